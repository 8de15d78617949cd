"""Background thread that runs a callable at a fixed interval."""

from __future__ import annotations

import logging
import threading
from typing import Callable

LOGGER = logging.getLogger(__name__)


class PeriodicWorker:
    """Call *func* every *interval* seconds on a daemon thread.

    The wait between runs uses :meth:`threading.Event.wait` so that
    :meth:`stop` wakes the thread immediately instead of sleeping out the
    remaining interval.
    """

    def __init__(self, interval: float, func: Callable[[], object], name: str) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._interval = interval
        self._func = func
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._func()
            except Exception:
                LOGGER.exception("Periodic job %s failed", self._name)
