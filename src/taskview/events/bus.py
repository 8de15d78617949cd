import logging
import threading
import uuid
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type

from ..config import EVENT_BUS_WORKERS
from ..utils.rwlock import ReadWriteLock


@dataclass(kw_only=True)
class Event:
    """Base event class; the concrete subclass is the routing key."""
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(kw_only=True)
class SubscriberErrorEvent(Event):
    """Published when a handler raised while processing another event."""
    failed_event_type: str = ""
    handler_name: str = ""
    error: Optional[BaseException] = None


@dataclass
class Subscription:
    """Handle returned by subscribe(); can be used to unsubscribe."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: Type = Event
    handler: Callable = field(default=lambda e: None)
    async_: bool = False
    active: bool = True

    def cancel(self):
        self.active = False


class EventBus:
    """Thread-safe publish/subscribe hub keyed by event class.

    Handlers are snapshotted under a read lock and invoked with no lock held,
    so a handler may subscribe, unsubscribe or publish without deadlocking.
    """

    def __init__(self, logger: logging.Logger = None, max_workers: int = EVENT_BUS_WORKERS):
        self._logger = logger or logging.getLogger(__name__)
        self._handlers: Dict[Type[Event], List[Subscription]] = defaultdict(list)
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_guard = threading.Lock()
        self._lock = ReadWriteLock()
        self._closed = False

    def subscribe(self, event_type: Type[Event], handler: Callable, async_: bool = False) -> Subscription:
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {handler!r}")
        sub = Subscription(event_type=event_type, handler=handler, async_=async_)
        with self._lock.write_locked():
            self._handlers[event_type].append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription):
        subscription.active = False
        with self._lock.write_locked():
            subs = self._handlers.get(subscription.event_type)
            if subs is None:
                return
            try:
                subs.remove(subscription)
            except ValueError:
                pass
            if not subs:
                del self._handlers[subscription.event_type]

    def subscriber_count(self, event_type: Type[Event]) -> int:
        with self._lock.read_locked():
            return sum(1 for sub in self._handlers.get(event_type, ()) if sub.active)

    def publish(self, event: Event):
        """Run every current subscriber of ``type(event)`` before returning.

        Subscribers registered with ``async_=True`` are handed to the worker
        pool instead and are not waited for.
        """
        for sub in self._snapshot(type(event)):
            if not sub.active:
                continue
            if sub.async_:
                self._submit(sub, event)
                continue
            try:
                sub.handler(event)
            except Exception as exc:
                self._report_failure(sub, event, exc)

    def publish_async(self, event: Event) -> List[Future]:
        """Submit all handlers to the thread pool, return futures."""
        futures: List[Future] = []
        for sub in self._snapshot(type(event)):
            if not sub.active:
                continue
            future = self._submit(sub, event)
            if future is not None:
                futures.append(future)
        return futures

    def shutdown(self, wait: bool = True):
        with self._executor_guard:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self, event_type: Type[Event]) -> List[Subscription]:
        with self._lock.read_locked():
            return list(self._handlers.get(event_type, ()))

    def _submit(self, sub: Subscription, event: Event) -> Optional[Future]:
        executor = self._ensure_executor()
        if executor is None:
            self._logger.warning(
                "EventBus is shut down; dropping %s for %s",
                type(event).__name__,
                _handler_name(sub.handler),
            )
            return None
        try:
            return executor.submit(self._safe_async_call, sub, event)
        except RuntimeError:
            # Executor shut down between the check and the submit.
            self._logger.warning("EventBus is shut down; dropping %s", type(event).__name__)
            return None

    def _ensure_executor(self) -> Optional[ThreadPoolExecutor]:
        with self._executor_guard:
            if self._executor is None and not self._closed:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="eventbus"
                )
            return self._executor

    def _safe_async_call(self, sub: Subscription, event: Event):
        if not sub.active:
            return
        try:
            sub.handler(event)
        except Exception as exc:
            self._report_failure(sub, event, exc)

    def _report_failure(self, sub: Subscription, event: Event, exc: Exception):
        event_name = type(event).__name__
        handler_name = _handler_name(sub.handler)
        self._logger.error(
            "Handler %s failed for %s: %s", handler_name, event_name, exc, exc_info=exc
        )
        if isinstance(event, SubscriberErrorEvent):
            # Errors raised on the error channel itself are only logged.
            return
        self.publish(
            SubscriberErrorEvent(
                failed_event_type=event_name,
                handler_name=handler_name,
                error=exc,
            )
        )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
