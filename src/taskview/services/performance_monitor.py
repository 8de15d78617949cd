"""Operation timing, process memory readings and frame-rate tracking."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterator, Optional

import psutil

from .. import config
from ..events.bus import EventBus
from ..events.performance_events import PerformanceBottleneckEvent, PerformanceMetricEvent

LOGGER = logging.getLogger(__name__)

MiB: int = 1 << 20


@dataclass
class MemorySnapshot:
    """Point-in-time memory reading for this process."""

    rss_bytes: int = 0
    vms_bytes: int = 0
    system_available_bytes: int = 0
    system_percent: float = 0.0

    @property
    def rss_mib(self) -> float:
        return self.rss_bytes / MiB


@dataclass(frozen=True)
class PerformanceSample:
    operation_name: str
    duration_ms: float
    memory_delta_bytes: int
    memory_usage_bytes: int
    is_bottleneck: bool


def read_memory_snapshot() -> MemorySnapshot:
    process = psutil.Process(os.getpid())
    info = process.memory_info()
    system = psutil.virtual_memory()
    return MemorySnapshot(
        rss_bytes=info.rss,
        vms_bytes=info.vms,
        system_available_bytes=system.available,
        system_percent=system.percent,
    )


class PerformanceMonitor:
    """Time named operations and flag the slow ones.

    ``start_tracking(name)`` / ``stop_tracking(name)`` bracket an operation;
    the difference in wall-clock time and process RSS is published as a
    :class:`PerformanceMetricEvent`, and operations slower than the
    threshold additionally produce a :class:`PerformanceBottleneckEvent`.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        bottleneck_threshold_ms: float = config.BOTTLENECK_THRESHOLD_MS,
        frame_window: int = config.FRAME_WINDOW_SIZE,
        clock: Callable[[], float] = time.perf_counter,
        memory_reader: Callable[[], MemorySnapshot] = read_memory_snapshot,
    ) -> None:
        if frame_window < 1:
            raise ValueError("frame_window must be at least 1")
        self._event_bus = event_bus
        self._threshold_ms = bottleneck_threshold_ms
        self._clock = clock
        self._read_memory = memory_reader
        self._lock = threading.Lock()
        self._pending: Dict[str, tuple] = {}
        self._frame_times: Deque[float] = deque(maxlen=frame_window)
        self._last_frame: Optional[float] = None
        self._operation_count = 0
        self._bottleneck_count = 0
        self._total_ms = 0.0
        self._slowest: Optional[PerformanceSample] = None

    @property
    def bottleneck_threshold_ms(self) -> float:
        return self._threshold_ms

    # ------------------------------------------------------------------
    # Operation tracking
    # ------------------------------------------------------------------

    def start_tracking(self, operation_name: str) -> None:
        memory = self._safe_memory().rss_bytes
        with self._lock:
            if operation_name in self._pending:
                LOGGER.debug("Restarting tracking for %s", operation_name)
            self._pending[operation_name] = (self._clock(), memory)

    def stop_tracking(self, operation_name: str) -> Optional[PerformanceSample]:
        """Finish *operation_name*; ``None`` if it was never started."""
        end = self._clock()
        with self._lock:
            started = self._pending.pop(operation_name, None)
        if started is None:
            LOGGER.debug("stop_tracking(%s) without a matching start", operation_name)
            return None
        start, start_memory = started
        memory = self._safe_memory().rss_bytes
        duration_ms = (end - start) * 1000.0
        sample = PerformanceSample(
            operation_name=operation_name,
            duration_ms=duration_ms,
            memory_delta_bytes=memory - start_memory,
            memory_usage_bytes=memory,
            is_bottleneck=duration_ms > self._threshold_ms,
        )
        with self._lock:
            self._operation_count += 1
            self._total_ms += duration_ms
            if sample.is_bottleneck:
                self._bottleneck_count += 1
            if self._slowest is None or duration_ms > self._slowest.duration_ms:
                self._slowest = sample

        self._publish(
            PerformanceMetricEvent(
                operation_name=operation_name,
                duration_ms=duration_ms,
                memory_delta_bytes=sample.memory_delta_bytes,
                memory_usage_bytes=memory,
            )
        )
        if sample.is_bottleneck:
            LOGGER.warning(
                "Slow operation %s: %.1f ms (threshold %.1f ms)",
                operation_name,
                duration_ms,
                self._threshold_ms,
            )
            self._publish(
                PerformanceBottleneckEvent(
                    operation_name=operation_name,
                    duration_ms=duration_ms,
                    memory_usage_bytes=memory,
                    threshold_ms=self._threshold_ms,
                )
            )
        return sample

    @contextmanager
    def track(self, operation_name: str) -> Iterator[None]:
        self.start_tracking(operation_name)
        try:
            yield
        finally:
            self.stop_tracking(operation_name)

    # ------------------------------------------------------------------
    # Memory and frames
    # ------------------------------------------------------------------

    def get_memory_usage(self) -> MemorySnapshot:
        return self._read_memory()

    def record_frame(self) -> None:
        now = self._clock()
        with self._lock:
            if self._last_frame is not None:
                self._frame_times.append(now - self._last_frame)
            self._last_frame = now

    @property
    def average_fps(self) -> float:
        with self._lock:
            if not self._frame_times:
                return 0.0
            average = sum(self._frame_times) / len(self._frame_times)
        return 1.0 / average if average > 0 else 0.0

    def get_statistics(self) -> dict:
        with self._lock:
            count = self._operation_count
            stats = {
                "operations": count,
                "bottlenecks": self._bottleneck_count,
                "average_duration_ms": round(self._total_ms / count, 3) if count else 0.0,
                "slowest_operation": self._slowest.operation_name if self._slowest else None,
                "slowest_duration_ms": round(self._slowest.duration_ms, 3) if self._slowest else 0.0,
                "in_progress": sorted(self._pending),
                "frames_sampled": len(self._frame_times),
            }
        stats["average_fps"] = round(self.average_fps, 3)
        stats["rss_bytes"] = self._safe_memory().rss_bytes
        return stats

    def reset(self) -> None:
        with self._lock:
            self._pending.clear()
            self._frame_times.clear()
            self._last_frame = None
            self._operation_count = 0
            self._bottleneck_count = 0
            self._total_ms = 0.0
            self._slowest = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _safe_memory(self) -> MemorySnapshot:
        try:
            return self._read_memory()
        except (psutil.Error, OSError) as exc:
            LOGGER.debug("Memory reading unavailable: %s", exc)
            return MemorySnapshot()

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
