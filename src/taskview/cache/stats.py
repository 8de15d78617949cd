"""Cache hit-rate statistics collector.

Tracks hits (per cache level), misses and evictions and exposes hit-rate
metrics.  Thread-safe; the cache manager updates it from whichever thread
performed the lookup.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CacheStats:
    """Immutable snapshot of the request counters."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate in [0.0, 1.0] rounded to 3 places; 0.0 when no requests."""
        if self.total == 0:
            return 0.0
        return round(self.hits / self.total, 3)


@dataclass(frozen=True)
class MemoryUsage:
    total_bytes: int = 0
    entry_count: int = 0

    @property
    def total_mb(self) -> float:
        return round(self.total_bytes / (1024 * 1024), 3)


@dataclass(frozen=True)
class CacheStatistics:
    """Everything :meth:`CacheManager.get_statistics` reports."""

    hits: int
    misses: int
    evictions: int
    total_requests: int
    hit_rate: float
    memory_usage: MemoryUsage
    max_memory_bytes: int
    entries_by_level: dict[str, int] = field(default_factory=dict)
    hits_by_level: dict[str, int] = field(default_factory=dict)


class CacheStatsCollector:
    """Thread-safe collector for hit/miss/eviction counters.

    Usage::

        stats = CacheStatsCollector()
        stats.record_hit("L1")
        stats.record_miss()
        print(stats.snapshot().hit_rate)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: dict[str, int] = {}
        self._misses = 0
        self._evictions = 0

    def record_hit(self, level: str) -> None:
        """Record a hit served from an entry tagged *level*."""
        with self._lock:
            self._hits[level] = self._hits.get(level, 0) + 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def record_evictions(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._evictions += count

    def snapshot(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=sum(self._hits.values()),
                misses=self._misses,
                evictions=self._evictions,
            )

    def hits_by_level(self) -> dict[str, int]:
        with self._lock:
            return {level: self._hits[level] for level in sorted(self._hits)}

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._misses = 0
            self._evictions = 0
