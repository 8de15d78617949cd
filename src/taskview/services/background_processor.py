"""Bounded-concurrency execution of work off the interactive thread.

A single coordination thread waits on a condition variable for queued
tasks and hands them to a :class:`ThreadPoolExecutor` while fewer than
``max_concurrent_tasks`` slots are taken.  A task only becomes Running
once a worker thread picks it up, and a cancelled task keeps its slot
until its action actually returns.  Task bodies may block freely; a
failing body is captured on its own task and reported, it never disturbs
the dispatch loop or other tasks.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict, deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from .. import config
from ..errors import InvalidTaskError, InvalidTaskStateError, ProcessorStoppedError
from ..errors.handler import ErrorHandler, ErrorSeverity
from ..events.bus import EventBus
from ..events.task_events import (
    TaskCancelledEvent,
    TaskCompletedEvent,
    TaskFailedEvent,
    TaskQueuedEvent,
    TaskStartedEvent,
)

LOGGER = logging.getLogger(__name__)


class TaskPriority(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"


class TaskState(str, Enum):
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


_TRANSITIONS = {
    TaskState.QUEUED: {TaskState.RUNNING, TaskState.CANCELLED},
    TaskState.RUNNING: {TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED},
}

TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED})


@dataclass
class BackgroundTask:
    """One unit of work and its lifecycle bookkeeping.

    State moves forward only: ``Queued -> Running -> Completed|Failed`` or
    ``Queued|Running -> Cancelled``.  Long-running actions may poll
    :attr:`cancel_requested` to stop early.
    """

    action: Callable[[], Any]
    name: str = ""
    priority: TaskPriority = TaskPriority.NORMAL
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: TaskState = TaskState.QUEUED
    queue_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0
    result: Any = None
    error: Optional[BaseException] = None
    _cancel_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False, compare=False)
    _started_at: float = field(default=0.0, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not callable(self.action):
            raise InvalidTaskError(f"Task action must be callable, got {self.action!r}")
        if not isinstance(self.priority, TaskPriority):
            try:
                self.priority = TaskPriority(self.priority)
            except ValueError:
                raise InvalidTaskError(f"Unknown task priority: {self.priority!r}") from None
        if not self.name:
            self.name = getattr(self.action, "__name__", "task")

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, new_state: TaskState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise InvalidTaskStateError(
                f"Task {self.id} cannot move from {self.state.value} to {new_state.value}"
            )
        now = datetime.now()
        if new_state is TaskState.RUNNING:
            self.start_time = now
            self._started_at = time.perf_counter()
        else:
            self.end_time = now
            if self._started_at:
                self.duration = time.perf_counter() - self._started_at
        self.state = new_state

    def request_cancel(self) -> None:
        self._cancel_event.set()


TaskLike = Union[BackgroundTask, Callable[[], Any]]


class BackgroundProcessor:
    """Queue tasks and run at most ``max_concurrent_tasks`` of them at once."""

    def __init__(
        self,
        max_concurrent_tasks: int = config.DEFAULT_MAX_CONCURRENT_TASKS,
        event_bus: Optional[EventBus] = None,
        error_handler: Optional[ErrorHandler] = None,
        history_size: int = config.COMPLETED_TASK_HISTORY,
    ) -> None:
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be at least 1")
        self._max_concurrent = max_concurrent_tasks
        self._event_bus = event_bus
        self._error_handler = error_handler
        self._history_size = max(1, history_size)

        self._condition = threading.Condition()
        self._queue: Deque[BackgroundTask] = deque()
        self._tasks: Dict[str, BackgroundTask] = {}
        self._active: Dict[str, BackgroundTask] = {}
        # Cancelled while running; slot held until the action returns.
        self._draining: Dict[str, BackgroundTask] = {}
        self._completed: "OrderedDict[str, BackgroundTask]" = OrderedDict()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._dispatcher: Optional[threading.Thread] = None
        self._running = False
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def max_concurrent_tasks(self) -> int:
        return self._max_concurrent

    @property
    def is_processing(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def queue_task(
        self,
        task: TaskLike,
        name: str = "",
        priority: Union[TaskPriority, str] = TaskPriority.NORMAL,
    ) -> str:
        """Enqueue *task* (a :class:`BackgroundTask` or a callable); returns its id."""
        if isinstance(task, BackgroundTask):
            if task.state is not TaskState.QUEUED:
                raise InvalidTaskStateError(f"Task {task.id} was already {task.state.value}")
            background_task = task
        else:
            background_task = BackgroundTask(action=task, name=name, priority=priority)
        background_task.queue_time = datetime.now()

        with self._condition:
            if self._closed:
                raise ProcessorStoppedError("BackgroundProcessor has been shut down")
            if background_task.id in self._tasks:
                raise InvalidTaskError(f"Task id {background_task.id} is already queued")
            self._tasks[background_task.id] = background_task
            self._queue.append(background_task)
            self._condition.notify_all()

        LOGGER.debug("Queued task %s (%s)", background_task.name, background_task.id)
        self._publish(
            TaskQueuedEvent(
                task_id=background_task.id,
                task_name=background_task.name,
                priority=background_task.priority.value,
                queue_time=background_task.queue_time,
            )
        )
        return background_task.id

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def start_processing(self) -> None:
        with self._condition:
            if self._closed:
                raise ProcessorStoppedError("BackgroundProcessor has been shut down")
            if self._running:
                return
            self._running = True
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_concurrent, thread_name_prefix="taskview-worker"
                )
            self._dispatcher = threading.Thread(
                target=self._dispatch_loop, name="taskview-dispatch", daemon=True
            )
            self._dispatcher.start()
        LOGGER.debug("Background processing started (max %d tasks)", self._max_concurrent)

    def stop_processing(self, timeout: Optional[float] = 5.0) -> None:
        """Stop dispatching new tasks; running tasks finish on their own."""
        with self._condition:
            if not self._running:
                return
            self._running = False
            dispatcher, self._dispatcher = self._dispatcher, None
            self._condition.notify_all()
        if dispatcher is not None and dispatcher is not threading.current_thread():
            dispatcher.join(timeout)

    def shutdown(self, wait: bool = True, cancel_pending: bool = True) -> None:
        self.stop_processing()
        pending: List[BackgroundTask] = []
        with self._condition:
            self._closed = True
            if cancel_pending:
                pending = list(self._queue)
                self._queue.clear()
                for task in pending:
                    task.request_cancel()
                    task.transition(TaskState.CANCELLED)
                    self._retire(task)
            executor, self._executor = self._executor, None
            self._condition.notify_all()
        for task in pending:
            self._publish(TaskCancelledEvent(task_id=task.id, task_name=task.name, was_running=False))
        if executor is not None:
            executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Cancellation and queries
    # ------------------------------------------------------------------

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a queued task, or flag a running one.

        A queued task is removed from the queue and marked cancelled.  A
        running task gets its cancel flag set and is marked cancelled; its
        action keeps running unless it checks :attr:`BackgroundTask.cancel_requested`,
        and its concurrency slot stays taken until the action returns.
        Returns ``False`` for unknown or finished tasks.
        """
        with self._condition:
            task = self._tasks.get(task_id)
            if task is None or task.is_finished:
                return False
            was_running = task.state is TaskState.RUNNING
            task.request_cancel()
            task.transition(TaskState.CANCELLED)
            if was_running:
                self._draining[task_id] = self._active.pop(task_id)
            elif self._active.pop(task_id, None) is None:
                self._queue.remove(task)
            self._retire(task)
            self._condition.notify_all()
        LOGGER.info("Cancelled task %s (%s)", task.name, task_id)
        self._publish(TaskCancelledEvent(task_id=task.id, task_name=task.name, was_running=was_running))
        return True

    def get_task(self, task_id: str) -> Optional[BackgroundTask]:
        with self._condition:
            return self._tasks.get(task_id) or self._completed.get(task_id)

    def get_active_task_count(self) -> int:
        with self._condition:
            return len(self._active)

    def get_queued_task_count(self) -> int:
        with self._condition:
            return len(self._queue)

    def completed_tasks(self) -> List[BackgroundTask]:
        with self._condition:
            return list(self._completed.values())

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is queued or running; ``False`` on timeout."""
        with self._condition:
            return self._condition.wait_for(
                lambda: not (self._queue or self._active or self._draining), timeout=timeout
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dispatch_loop(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(
                    lambda: not self._running
                    or (self._queue and len(self._active) + len(self._draining) < self._max_concurrent)
                )
                if not self._running:
                    return
                task = self._queue.popleft()
                # Claimed: holds a slot but stays Queued until a worker starts it.
                self._active[task.id] = task
                executor = self._executor
            if executor is None:
                self._fail_unstarted(task, ProcessorStoppedError("BackgroundProcessor has been shut down"))
                continue
            try:
                executor.submit(self._execute, task)
            except RuntimeError as exc:
                LOGGER.error("Could not submit task %s: %s", task.name, exc)
                self._fail_unstarted(task, exc)

    def _begin(self, task: BackgroundTask) -> bool:
        with self._condition:
            if task.state is not TaskState.QUEUED:
                return False
            task.transition(TaskState.RUNNING)
        self._publish(TaskStartedEvent(task_id=task.id, task_name=task.name))
        return True

    def _fail_unstarted(self, task: BackgroundTask, error: BaseException) -> None:
        if self._begin(task):
            self._finish(task, error=error)

    def _execute(self, task: BackgroundTask) -> None:
        if not self._begin(task):
            return
        try:
            result = task.action()
        except Exception as exc:
            self._finish(task, error=exc)
        else:
            self._finish(task, result=result)

    def _finish(self, task: BackgroundTask, result: Any = None, error: Optional[BaseException] = None) -> None:
        with self._condition:
            if task.state is TaskState.CANCELLED:
                # Cancelled while running: only the slot is left to release.
                self._draining.pop(task.id, None)
                self._condition.notify_all()
                return
            if error is None:
                task.result = result
                task.transition(TaskState.COMPLETED)
            else:
                task.error = error
                task.transition(TaskState.FAILED)

        # Task stays active until its events are delivered.
        try:
            if error is None:
                LOGGER.debug("Task %s completed in %.3fs", task.name, task.duration)
                self._publish(
                    TaskCompletedEvent(
                        task_id=task.id, task_name=task.name, result=result, duration=task.duration
                    )
                )
            else:
                LOGGER.warning("Task %s failed: %s", task.name, error, exc_info=error)
                if self._error_handler is not None:
                    self._error_handler.handle(
                        error,
                        ErrorSeverity.WARNING,
                        {"task_id": task.id, "task_name": task.name},
                    )
                self._publish(
                    TaskFailedEvent(task_id=task.id, task_name=task.name, error=error, duration=task.duration)
                )
        finally:
            with self._condition:
                self._active.pop(task.id, None)
                self._retire(task)
                self._condition.notify_all()

    def _retire(self, task: BackgroundTask) -> None:
        # Caller holds the condition.
        self._tasks.pop(task.id, None)
        self._completed[task.id] = task
        while len(self._completed) > self._history_size:
            self._completed.popitem(last=False)

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
