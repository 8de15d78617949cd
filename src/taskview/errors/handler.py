"""Central reporting for errors that are handled rather than raised."""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from ..events.bus import Event, EventBus


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_WITH_TRACEBACK = (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


@dataclass(kw_only=True)
class ErrorOccurredEvent(Event):
    error: BaseException
    severity: ErrorSeverity
    context: dict = field(default_factory=dict)


class ErrorHandler:
    """Log, count and broadcast an error, then let the caller carry on.

    Background work reports failures here instead of letting them escape a
    worker thread.  ERROR and CRITICAL reports are logged with their
    traceback and forwarded to the registered UI callback, if any.
    """

    def __init__(self, logger: logging.Logger, event_bus: EventBus):
        self._logger = logger
        self._events = event_bus
        self._ui_callback: Optional[Callable[[str, ErrorSeverity], None]] = None
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def register_ui_callback(self, callback: Callable[[str, ErrorSeverity], None]):
        self._ui_callback = callback

    def handle(self, error: BaseException, severity: ErrorSeverity = ErrorSeverity.ERROR, context: dict = None):
        context = dict(context or {})
        with self._lock:
            self._counts[severity] += 1

        log_method = getattr(self._logger, severity.value, self._logger.error)
        log_method(
            "%s: %s",
            error.__class__.__name__,
            error,
            exc_info=error if severity in _WITH_TRACEBACK else None,
            extra={"error_context": context},
        )

        self._events.publish(ErrorOccurredEvent(error=error, severity=severity, context=context))

        if self._ui_callback and severity in _WITH_TRACEBACK:
            self._ui_callback(str(error), severity)

    def error_counts(self) -> Dict[str, int]:
        """Number of reports per severity name since creation."""
        with self._lock:
            return {severity.value: self._counts[severity] for severity in ErrorSeverity}
