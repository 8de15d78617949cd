"""Multi-level expiring key/value cache with a memory budget."""

from __future__ import annotations

import dataclasses
import fnmatch
import heapq
import json
import logging
import math
import sys
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .. import config
from ..events.bus import Event, EventBus
from ..events.cache_events import (
    CacheCleanupEvent,
    CacheClearedEvent,
    CacheEntryAddedEvent,
    CacheEntryInvalidatedEvent,
    CacheEvictionEvent,
    CachePatternInvalidatedEvent,
)
from ..utils.periodic import PeriodicWorker
from .stats import CacheStatistics, CacheStatsCollector, MemoryUsage

LOGGER = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    data: Any
    created_at: float
    expires_at: float
    level: str
    size_bytes: int
    access_count: int = 0
    last_access: float = 0.0

    @property
    def ttl(self) -> float:
        return self.expires_at - self.created_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return repr(obj)


def estimate_size(data: Any) -> int:
    """Approximate the memory cost of *data* from its JSON serialisation."""

    if isinstance(data, (bytes, bytearray, memoryview)):
        return len(data)
    try:
        encoded = json.dumps(data, default=_json_default, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError):
        try:
            return sys.getsizeof(data)
        except TypeError:
            return config.CACHE_FALLBACK_ENTRY_BYTES
    return len(encoded.encode("utf-8"))


class CacheManager:
    """Thread-safe expiring cache bounded by an estimated memory budget.

    Entries carry a free-form *level* tag (``"L1"``, ``"L2"`` ...) used only
    for statistics and bulk inspection.  Expired entries are dropped lazily
    on lookup and by :meth:`cleanup_expired_entries`, which can also run
    periodically via :meth:`start_cleanup_timer`.

    Events are published after the internal lock is released so that
    subscribers may call back into the cache.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        max_memory_bytes: int = config.DEFAULT_CACHE_MAX_MEMORY_BYTES,
        default_ttl: float = config.DEFAULT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_memory_bytes <= 0:
            raise ValueError(f"max_memory_bytes must be positive, got {max_memory_bytes!r}")
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl!r}")
        self._event_bus = event_bus
        self._max_memory = int(max_memory_bytes)
        self._default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._memory = 0
        self._lock = threading.Lock()
        self._stats = CacheStatsCollector()
        self._cleanup_worker: Optional[PeriodicWorker] = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def max_memory_bytes(self) -> int:
        return self._max_memory

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def memory_usage_bytes(self) -> int:
        with self._lock:
            return self._memory

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def contains(self, key: str) -> bool:
        """Return whether *key* holds a live entry; does not touch statistics."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(now)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def set(
        self,
        key: str,
        data: Any,
        ttl_seconds: Optional[float] = None,
        level: str = config.DEFAULT_CACHE_LEVEL,
    ) -> bool:
        """Store *data* under *key*.

        Returns ``False`` when the entry alone is larger than the memory
        budget; such entries are never admitted and nothing else changes.
        """
        ttl = self._default_ttl if ttl_seconds is None else float(ttl_seconds)
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds!r}")

        size = estimate_size(data)
        if size > self._max_memory:
            LOGGER.debug(
                "Rejecting cache entry %s: %d bytes exceeds budget of %d",
                key,
                size,
                self._max_memory,
            )
            return False

        now = self._clock()
        entry = CacheEntry(
            key=key,
            data=data,
            created_at=now,
            expires_at=now + ttl,
            level=level,
            size_bytes=size,
            last_access=now,
        )

        pending: List[Event] = []
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._memory -= previous.size_bytes
            evicted = self._make_room(size, now)
            self._entries[key] = entry
            self._memory += size

        if evicted:
            self._stats.record_evictions(evicted)
            pending.append(CacheEvictionEvent(entries_removed=evicted, reason="memory_limit"))
        pending.append(CacheEntryAddedEvent(key=key, level=level, size_bytes=size, ttl=ttl))
        self._publish(pending)
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Return the payload for *key*, or *default* when missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(now):
                self._remove_locked(key)
                entry = None
            if entry is None:
                self._stats.record_miss()
                return default
            entry.access_count += 1
            entry.last_access = now
            self._stats.record_hit(entry.level)
            return entry.data

    def invalidate(self, key: str) -> bool:
        with self._lock:
            removed = self._remove_locked(key)
        if removed:
            self._publish([CacheEntryInvalidatedEvent(key=key)])
        return removed

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._memory = 0
        self._publish([CacheClearedEvent(entries_removed=count)])
        return count

    def invalidate_by_pattern(self, pattern: str) -> int:
        """Remove every key matching the shell-style glob *pattern*."""
        with self._lock:
            matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                self._remove_locked(key)
        events: List[Event] = [CacheEntryInvalidatedEvent(key=key) for key in matched]
        events.append(CachePatternInvalidatedEvent(pattern=pattern, entries_removed=len(matched)))
        self._publish(events)
        return len(matched)

    def cleanup_expired_entries(self) -> int:
        now = self._clock()
        with self._lock:
            count = self._purge_expired_locked(now)
        if count:
            LOGGER.debug("Removed %d expired cache entries", count)
        self._publish([CacheCleanupEvent(entries_removed=count)])
        return count

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> CacheStatistics:
        snap = self._stats.snapshot()
        with self._lock:
            usage = MemoryUsage(total_bytes=self._memory, entry_count=len(self._entries))
            by_level: Dict[str, int] = {}
            for entry in self._entries.values():
                by_level[entry.level] = by_level.get(entry.level, 0) + 1
        return CacheStatistics(
            hits=snap.hits,
            misses=snap.misses,
            evictions=snap.evictions,
            total_requests=snap.total,
            hit_rate=snap.hit_rate,
            memory_usage=usage,
            max_memory_bytes=self._max_memory,
            entries_by_level=dict(sorted(by_level.items())),
            hits_by_level=self._stats.hits_by_level(),
        )

    def reset_statistics(self) -> None:
        self._stats.reset()

    # ------------------------------------------------------------------
    # Periodic cleanup
    # ------------------------------------------------------------------

    def start_cleanup_timer(self, interval: float = config.CACHE_CLEANUP_INTERVAL_SEC) -> None:
        if self._cleanup_worker is not None and self._cleanup_worker.running:
            return
        self._cleanup_worker = PeriodicWorker(
            interval, self.cleanup_expired_entries, name="cache-cleanup"
        )
        self._cleanup_worker.start()

    def stop_cleanup_timer(self) -> None:
        if self._cleanup_worker is not None:
            self._cleanup_worker.stop()
            self._cleanup_worker = None

    def shutdown(self) -> None:
        self.stop_cleanup_timer()

    # ------------------------------------------------------------------
    # Internals (callers hold ``self._lock``)
    # ------------------------------------------------------------------

    def _remove_locked(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._memory -= entry.size_bytes
        return True

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove_locked(key)
        return len(expired)

    def _make_room(self, incoming: int, now: float) -> int:
        """Evict oldest-accessed entries until *incoming* bytes fit.

        Expired entries are dropped first and are not counted as evictions.
        Each round removes at least one entry and at least a quarter of the
        remaining ones.
        """
        if self._memory + incoming <= self._max_memory:
            return 0
        self._purge_expired_locked(now)
        evicted = 0
        while self._memory + incoming > self._max_memory and self._entries:
            batch = max(1, math.ceil(len(self._entries) * config.CACHE_EVICTION_FRACTION))
            victims = heapq.nsmallest(
                batch, self._entries.values(), key=lambda entry: entry.last_access
            )
            for victim in victims:
                self._remove_locked(victim.key)
            evicted += len(victims)
        if evicted:
            LOGGER.debug("Evicted %d cache entries to admit %d bytes", evicted, incoming)
        return evicted

    def _publish(self, events: List[Event]) -> None:
        if self._event_bus is None:
            return
        for event in events:
            self._event_bus.publish(event)
