"""Tests for BackgroundProcessor — bounded concurrency and task lifecycle."""

import threading
import time
from datetime import datetime
from unittest.mock import Mock

import pytest

from conftest import collect
from taskview.errors import InvalidTaskError, InvalidTaskStateError, ProcessorStoppedError
from taskview.errors.handler import ErrorHandler, ErrorSeverity
from taskview.events.task_events import (
    TaskCancelledEvent,
    TaskCompletedEvent,
    TaskFailedEvent,
    TaskQueuedEvent,
    TaskStartedEvent,
)
from taskview.services.background_processor import (
    BackgroundProcessor,
    BackgroundTask,
    TaskPriority,
    TaskState,
)


@pytest.fixture
def processor(event_bus):
    proc = BackgroundProcessor(max_concurrent_tasks=2, event_bus=event_bus)
    yield proc
    proc.shutdown()


class TestBackgroundTask:
    def test_defaults(self):
        task = BackgroundTask(action=lambda: 1)
        assert task.state is TaskState.QUEUED
        assert task.priority is TaskPriority.NORMAL
        assert task.id
        assert task.name == "<lambda>"

    def test_forward_transitions(self):
        task = BackgroundTask(action=lambda: 1, name="t")
        task.transition(TaskState.RUNNING)
        assert task.start_time is not None
        task.transition(TaskState.COMPLETED)
        assert task.end_time is not None
        assert task.duration >= 0
        assert task.is_finished

    @pytest.mark.parametrize(
        "path",
        [
            [TaskState.COMPLETED],
            [TaskState.FAILED],
            [TaskState.RUNNING, TaskState.QUEUED],
            [TaskState.RUNNING, TaskState.COMPLETED, TaskState.FAILED],
            [TaskState.CANCELLED, TaskState.RUNNING],
        ],
    )
    def test_illegal_transitions(self, path):
        task = BackgroundTask(action=lambda: 1)
        with pytest.raises(InvalidTaskStateError):
            for state in path:
                task.transition(state)

    def test_priority_from_string(self):
        assert BackgroundTask(action=print, priority="High").priority is TaskPriority.HIGH

    def test_invalid_task(self):
        with pytest.raises(InvalidTaskError):
            BackgroundTask(action="not callable")
        with pytest.raises(InvalidTaskError):
            BackgroundTask(action=print, priority="Urgent")


class TestQueueing:
    def test_queue_returns_unique_ids(self, processor):
        ids = {processor.queue_task(lambda: None) for _ in range(5)}
        assert len(ids) == 5
        assert processor.get_queued_task_count() == 5

    def test_queued_event(self, processor, event_bus):
        queued = collect(event_bus, TaskQueuedEvent)
        task_id = processor.queue_task(lambda: None, name="sync", priority=TaskPriority.HIGH)
        assert queued[0].task_id == task_id
        assert queued[0].task_name == "sync"
        assert queued[0].priority == "High"
        assert queued[0].queue_time is not None

    def test_rejects_non_callables(self, processor):
        with pytest.raises(InvalidTaskError):
            processor.queue_task(42)

    def test_rejects_already_started_task(self, processor):
        task = BackgroundTask(action=lambda: None)
        task.transition(TaskState.RUNNING)
        with pytest.raises(InvalidTaskStateError):
            processor.queue_task(task)

    def test_rejects_after_shutdown(self, event_bus):
        proc = BackgroundProcessor(event_bus=event_bus)
        proc.shutdown()
        with pytest.raises(ProcessorStoppedError):
            proc.queue_task(lambda: None)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            BackgroundProcessor(max_concurrent_tasks=0)


class TestExecution:
    def test_runs_tasks_and_publishes_completion(self, processor, event_bus):
        completed = collect(event_bus, TaskCompletedEvent)
        started = collect(event_bus, TaskStartedEvent)
        task_id = processor.queue_task(lambda: 21 * 2, name="answer")
        processor.start_processing()
        assert processor.wait_for_idle(5)

        task = processor.get_task(task_id)
        assert task.state is TaskState.COMPLETED
        assert task.result == 42
        assert completed[0].result == 42
        assert completed[0].task_name == "answer"
        assert completed[0].duration >= 0
        assert started[0].task_id == task_id

    def test_failure_is_isolated(self, processor, event_bus):
        failed = collect(event_bus, TaskFailedEvent)

        def boom():
            raise RuntimeError("broken")

        bad = processor.queue_task(boom)
        good = processor.queue_task(lambda: "ok")
        processor.start_processing()
        assert processor.wait_for_idle(5)

        assert processor.get_task(bad).state is TaskState.FAILED
        assert isinstance(processor.get_task(bad).error, RuntimeError)
        assert processor.get_task(good).result == "ok"
        assert len(failed) == 1
        assert str(failed[0].error) == "broken"
        assert processor.is_processing

    def test_failure_goes_through_error_handler(self, event_bus):
        handler = ErrorHandler(Mock(), event_bus)
        handler.handle = Mock()
        proc = BackgroundProcessor(event_bus=event_bus, error_handler=handler)
        try:
            task_id = proc.queue_task(lambda: 1 / 0, name="divide")
            proc.start_processing()
            assert proc.wait_for_idle(5)
        finally:
            proc.shutdown()
        error, severity, context = handler.handle.call_args.args
        assert isinstance(error, ZeroDivisionError)
        assert severity is ErrorSeverity.WARNING
        assert context == {"task_id": task_id, "task_name": "divide"}

    def test_active_count_never_exceeds_limit(self, event_bus):
        limit = 3
        proc = BackgroundProcessor(max_concurrent_tasks=limit, event_bus=event_bus)
        lock = threading.Lock()
        running = {"now": 0, "peak": 0}
        observed = []

        def work():
            with lock:
                running["now"] += 1
                running["peak"] = max(running["peak"], running["now"])
            time.sleep(0.02)
            observed.append(proc.get_active_task_count())
            with lock:
                running["now"] -= 1

        try:
            for _ in range(20):
                proc.queue_task(work)
            proc.start_processing()
            while not proc.wait_for_idle(0.005):
                observed.append(proc.get_active_task_count())
        finally:
            proc.shutdown()

        assert running["peak"] <= limit
        assert max(observed) <= limit
        assert len(proc.completed_tasks()) == 20

    def test_tasks_start_in_fifo_order(self, event_bus):
        proc = BackgroundProcessor(max_concurrent_tasks=1, event_bus=event_bus)
        order = []
        try:
            for i in range(5):
                proc.queue_task(lambda i=i: order.append(i))
            proc.start_processing()
            assert proc.wait_for_idle(5)
        finally:
            proc.shutdown()
        assert order == [0, 1, 2, 3, 4]

    def test_stop_processing_leaves_queue_intact(self, processor):
        processor.start_processing()
        processor.stop_processing()
        processor.queue_task(lambda: None)
        time.sleep(0.05)
        assert processor.get_queued_task_count() == 1
        processor.start_processing()
        assert processor.wait_for_idle(5)

    def test_completed_history_is_bounded(self, event_bus):
        proc = BackgroundProcessor(event_bus=event_bus, history_size=3)
        try:
            ids = [proc.queue_task(lambda: None) for _ in range(5)]
            proc.start_processing()
            assert proc.wait_for_idle(5)
        finally:
            proc.shutdown()
        assert len(proc.completed_tasks()) == 3
        assert proc.get_task(ids[0]) is None


class TestCancellation:
    def test_cancel_queued_task(self, processor, event_bus):
        cancelled = collect(event_bus, TaskCancelledEvent)
        ran = []
        task_id = processor.queue_task(lambda: ran.append(1))
        assert processor.cancel_task(task_id) is True
        processor.start_processing()
        assert processor.wait_for_idle(5)
        assert ran == []
        assert processor.get_task(task_id).state is TaskState.CANCELLED
        assert cancelled[0].was_running is False

    def test_cancel_running_task_is_cooperative(self, processor, event_bus):
        started = threading.Event()
        stopped = threading.Event()

        def long_running():
            started.set()
            task = processor.get_task(task_id)
            while not task.cancel_requested:
                time.sleep(0.005)
            stopped.set()
            return "partial"

        task_id = processor.queue_task(long_running)
        processor.start_processing()
        assert started.wait(5)
        assert processor.cancel_task(task_id) is True
        assert stopped.wait(5)
        assert processor.get_task(task_id).state is TaskState.CANCELLED
        assert processor.get_active_task_count() == 0

    def test_cancelled_task_holds_its_slot_until_it_returns(self, event_bus):
        proc = BackgroundProcessor(max_concurrent_tasks=1, event_bus=event_bus)
        started = threading.Event()
        release = threading.Event()
        ran = []

        def blocking():
            started.set()
            release.wait(5)

        try:
            first = proc.queue_task(blocking)
            second = proc.queue_task(lambda: ran.append("second"))
            proc.start_processing()
            assert started.wait(5)
            assert proc.cancel_task(first) is True
            cancelled_at = datetime.now()

            time.sleep(0.05)
            waiting = proc.get_task(second)
            assert waiting.state is TaskState.QUEUED
            assert waiting.start_time is None
            assert ran == []
            assert proc.get_queued_task_count() == 1
            assert proc.wait_for_idle(0.01) is False

            release.set()
            assert proc.wait_for_idle(5)
        finally:
            release.set()
            proc.shutdown()

        done = proc.get_task(second)
        assert done.state is TaskState.COMPLETED
        assert done.start_time >= cancelled_at
        assert ran == ["second"]

    def test_cancel_before_a_worker_picks_the_task_up(self, event_bus):
        started = collect(event_bus, TaskStartedEvent)
        proc = BackgroundProcessor(max_concurrent_tasks=1, event_bus=event_bus)
        ran = []
        task = BackgroundTask(action=lambda: ran.append(1))
        proc._active[task.id] = task
        proc._tasks[task.id] = task
        try:
            assert proc.cancel_task(task.id) is True
            proc._execute(task)
        finally:
            proc.shutdown()
        assert ran == []
        assert task.state is TaskState.CANCELLED
        assert task.start_time is None
        assert started == []
        assert proc.get_active_task_count() == 0

    def test_cancel_unknown_or_finished(self, processor):
        assert processor.cancel_task("nope") is False
        task_id = processor.queue_task(lambda: None)
        processor.start_processing()
        assert processor.wait_for_idle(5)
        assert processor.cancel_task(task_id) is False

    def test_shutdown_cancels_pending(self, event_bus):
        cancelled = collect(event_bus, TaskCancelledEvent)
        proc = BackgroundProcessor(event_bus=event_bus)
        task_id = proc.queue_task(lambda: None)
        proc.shutdown()
        assert proc.get_task(task_id).state is TaskState.CANCELLED
        assert len(cancelled) == 1
