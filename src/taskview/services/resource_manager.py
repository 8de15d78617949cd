"""Pooled buffers and tracked, disposable resources."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from .. import config
from ..errors import PoolExhaustedError, ResourceError, ResourceNotFoundError
from ..events.bus import EventBus
from ..events.performance_events import ResourcesCleanedUpEvent
from ..utils.periodic import PeriodicWorker

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolStats:
    name: str
    item_size: int
    max_size: int
    allocated: int
    available: int
    in_use: int
    checkouts: int


class MemoryPool:
    """Fixed-size ``bytearray`` buffers with a hard upper bound.

    ``initial_size`` buffers are allocated up front; more are created on
    demand until ``max_size`` exist, after which :meth:`checkout` raises
    :class:`PoolExhaustedError`.  Returned buffers are zeroed before reuse.
    """

    def __init__(
        self,
        name: str,
        item_size: int,
        initial_size: int = 0,
        max_size: int = config.DEFAULT_POOL_MAX_SIZE,
    ) -> None:
        if item_size <= 0:
            raise ValueError("item_size must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if not 0 <= initial_size <= max_size:
            raise ValueError("initial_size must be between 0 and max_size")
        self._name = name
        self._item_size = item_size
        self._max_size = max_size
        self._lock = threading.Lock()
        self._free: List[bytearray] = [bytearray(item_size) for _ in range(initial_size)]
        self._in_use: Dict[int, bytearray] = {}
        self._allocated = initial_size
        self._checkouts = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def item_size(self) -> int:
        return self._item_size

    @property
    def max_size(self) -> int:
        return self._max_size

    def checkout(self) -> bytearray:
        with self._lock:
            if self._free:
                buffer = self._free.pop()
            elif self._allocated < self._max_size:
                buffer = bytearray(self._item_size)
                self._allocated += 1
            else:
                raise PoolExhaustedError(
                    f"Pool {self._name!r} exhausted (max_size={self._max_size})"
                )
            self._in_use[id(buffer)] = buffer
            self._checkouts += 1
            return buffer

    def release(self, buffer: bytearray) -> None:
        """Return *buffer*; returning a buffer twice or from elsewhere raises."""
        with self._lock:
            if self._in_use.pop(id(buffer), None) is not buffer:
                raise ResourceError(f"Buffer was not checked out from pool {self._name!r}")
            buffer[:] = bytes(self._item_size)
            self._free.append(buffer)

    @contextmanager
    def borrow(self) -> Iterator[bytearray]:
        buffer = self.checkout()
        try:
            yield buffer
        finally:
            self.release(buffer)

    def clear(self) -> int:
        """Drop idle buffers; buffers still checked out are unaffected."""
        with self._lock:
            dropped = len(self._free)
            self._free.clear()
            self._allocated -= dropped
        return dropped

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                name=self._name,
                item_size=self._item_size,
                max_size=self._max_size,
                allocated=self._allocated,
                available=len(self._free),
                in_use=len(self._in_use),
                checkouts=self._checkouts,
            )


@dataclass
class TrackedResource:
    id: str
    name: str
    value: Any
    disposer: Optional[Callable[[Any], None]]
    created_at: float
    unused_since: Optional[float] = None

    @property
    def in_use(self) -> bool:
        return self.unused_since is None


def _default_disposer(value: Any) -> None:
    close = getattr(value, "close", None)
    if callable(close):
        close()


class ResourceManager:
    """Owns memory pools and ad hoc resources with a dispose lifecycle.

    Resources are created in use.  Once :meth:`mark_unused` is called they
    become candidates for :meth:`cleanup_unused`, which disposes the ones
    idle for at least ``max_idle_seconds``.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event_bus = event_bus
        self._clock = clock
        self._lock = threading.Lock()
        self._pools: Dict[str, MemoryPool] = {}
        self._resources: Dict[str, TrackedResource] = {}
        self._cleanup_worker: Optional[PeriodicWorker] = None

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def create_pool(
        self,
        name: str,
        item_size: int,
        initial_size: int = 0,
        max_size: int = config.DEFAULT_POOL_MAX_SIZE,
    ) -> MemoryPool:
        with self._lock:
            if name in self._pools:
                raise ResourceError(f"Pool {name!r} already exists")
            pool = MemoryPool(name, item_size, initial_size, max_size)
            self._pools[name] = pool
        LOGGER.debug("Created pool %s (%d x %d bytes)", name, max_size, item_size)
        return pool

    def get_pool(self, name: str) -> Optional[MemoryPool]:
        with self._lock:
            return self._pools.get(name)

    def checkout(self, pool_name: str) -> bytearray:
        return self._require_pool(pool_name).checkout()

    def release(self, pool_name: str, buffer: bytearray) -> None:
        self._require_pool(pool_name).release(buffer)

    def clear_pools(self) -> int:
        with self._lock:
            pools = list(self._pools.values())
        dropped = sum(pool.clear() for pool in pools)
        LOGGER.info("Cleared %d idle pooled buffers", dropped)
        return dropped

    def pool_stats(self) -> Dict[str, PoolStats]:
        with self._lock:
            pools = list(self._pools.values())
        return {pool.name: pool.stats() for pool in pools}

    # ------------------------------------------------------------------
    # Tracked resources
    # ------------------------------------------------------------------

    def create_resource(
        self,
        factory: Callable[[], Any],
        disposer: Optional[Callable[[Any], None]] = None,
        name: str = "",
    ) -> str:
        value = factory()
        resource = TrackedResource(
            id=str(uuid.uuid4()),
            name=name or type(value).__name__,
            value=value,
            disposer=disposer or _default_disposer,
            created_at=self._clock(),
        )
        with self._lock:
            self._resources[resource.id] = resource
        return resource.id

    def get_resource(self, resource_id: str) -> Any:
        with self._lock:
            resource = self._resources.get(resource_id)
        return resource.value if resource is not None else None

    def mark_unused(self, resource_id: str) -> None:
        with self._lock:
            resource = self._require_resource(resource_id)
            if resource.unused_since is None:
                resource.unused_since = self._clock()

    def mark_used(self, resource_id: str) -> None:
        with self._lock:
            self._require_resource(resource_id).unused_since = None

    def resource_count(self) -> int:
        with self._lock:
            return len(self._resources)

    def cleanup_unused(self, max_idle_seconds: float = 0.0) -> int:
        """Dispose resources idle for at least *max_idle_seconds*."""
        now = self._clock()
        with self._lock:
            stale = [
                resource
                for resource in self._resources.values()
                if resource.unused_since is not None and now - resource.unused_since >= max_idle_seconds
            ]
            for resource in stale:
                del self._resources[resource.id]
        for resource in stale:
            self._dispose_value(resource)
        if stale:
            LOGGER.debug("Cleaned up %d unused resources", len(stale))
            self._publish(ResourcesCleanedUpEvent(count=len(stale)))
        return len(stale)

    def dispose(self, resource_id: str) -> bool:
        with self._lock:
            resource = self._resources.pop(resource_id, None)
        if resource is None:
            return False
        self._dispose_value(resource)
        return True

    def dispose_all(self) -> int:
        with self._lock:
            resources = list(self._resources.values())
            self._resources.clear()
        for resource in resources:
            self._dispose_value(resource)
        return len(resources)

    # ------------------------------------------------------------------
    # Periodic cleanup
    # ------------------------------------------------------------------

    def start_cleanup_timer(
        self,
        interval: float = config.RESOURCE_CLEANUP_INTERVAL_SEC,
        max_idle_seconds: float = 0.0,
    ) -> None:
        if self._cleanup_worker is not None and self._cleanup_worker.running:
            return
        self._cleanup_worker = PeriodicWorker(
            interval, lambda: self.cleanup_unused(max_idle_seconds), name="taskview-resource-cleanup"
        )
        self._cleanup_worker.start()

    def stop_cleanup_timer(self) -> None:
        if self._cleanup_worker is not None:
            self._cleanup_worker.stop()
            self._cleanup_worker = None

    def shutdown(self) -> None:
        self.stop_cleanup_timer()
        self.dispose_all()
        self.clear_pools()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_pool(self, name: str) -> MemoryPool:
        pool = self.get_pool(name)
        if pool is None:
            raise ResourceNotFoundError(f"No pool named {name!r}")
        return pool

    def _require_resource(self, resource_id: str) -> TrackedResource:
        # Caller holds the lock.
        resource = self._resources.get(resource_id)
        if resource is None:
            raise ResourceNotFoundError(f"Unknown resource {resource_id!r}")
        return resource

    def _dispose_value(self, resource: TrackedResource) -> None:
        try:
            resource.disposer(resource.value)
        except Exception:
            LOGGER.exception("Disposing resource %s (%s) failed", resource.name, resource.id)

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
