"""Engine facade wiring the event bus, caches, views and background services."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .cache.manager import CacheManager
from .core.data_source import VirtualDataSource
from .core.filter_engine import FilterEngine
from .core.query_parser import ParsedQuery
from .core.sorters import create_sorter
from .core.viewport import VirtualScrollingViewport
from .domain.ports import IRecordProvider, RecordFormatter
from .domain.record import TaskRecord
from .errors import InvalidRecordError, ProviderNotConfiguredError, RecordSaveError
from .errors.handler import ErrorHandler
from .events.bus import EventBus
from .events.filter_events import RecordsChangedEvent
from .services.background_processor import BackgroundProcessor, TaskPriority
from .services.performance_monitor import PerformanceMonitor
from .services.resource_manager import ResourceManager
from .settings.manager import SettingsManager

LOGGER = logging.getLogger(__name__)

_MiB = 1024 * 1024


def _resolve_settings(settings: SettingsManager | Mapping[str, Any] | None) -> SettingsManager:
    if isinstance(settings, SettingsManager):
        return settings
    return SettingsManager.from_dict(dict(settings) if settings else None)


class TaskViewEngine:
    """One object owning the whole pipeline.

    ``provider records -> data source -> filter engine -> result source ->
    viewport``.  Everything except the background services is driven from
    the caller's (interactive) thread.  Background syncs and saves stage
    their records; :meth:`apply_pending_updates` moves them into the
    pipeline on the interactive thread.
    """

    def __init__(
        self,
        settings: SettingsManager | Mapping[str, Any] | None = None,
        provider: Optional[IRecordProvider] = None,
        formatter: Optional[RecordFormatter] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.event_bus = event_bus or EventBus()
        self.settings = _resolve_settings(settings)
        self.settings.bind_event_bus(self.event_bus)
        self.provider = provider
        get = self.settings.get

        self.error_handler = ErrorHandler(LOGGER, self.event_bus)
        self.cache = CacheManager(
            event_bus=self.event_bus,
            max_memory_bytes=int(get("cache.max_memory_mb") * _MiB),
            default_ttl=get("cache.default_ttl_seconds"),
        )
        self.records = VirtualDataSource[TaskRecord]()
        self.results = VirtualDataSource[TaskRecord]()
        self.filter_engine = FilterEngine(
            self.records,
            cache_manager=self.cache,
            event_bus=self.event_bus,
            cache_ttl=get("cache.filter_results_ttl_seconds"),
        )
        self.viewport = VirtualScrollingViewport(
            width=get("viewport.width"),
            height=get("viewport.height"),
            data_source=self.results,
            event_bus=self.event_bus,
            formatter=formatter,
        )
        self.processor = BackgroundProcessor(
            max_concurrent_tasks=get("background.max_concurrent_tasks"),
            event_bus=self.event_bus,
            error_handler=self.error_handler,
            history_size=get("background.history_size"),
        )
        self.monitor = PerformanceMonitor(
            event_bus=self.event_bus,
            bottleneck_threshold_ms=get("performance.bottleneck_threshold_ms"),
            frame_window=get("performance.frame_window"),
        )
        self.resources = ResourceManager(event_bus=self.event_bus)

        self._pending_lock = threading.Lock()
        self._pending_records: Optional[List[TaskRecord]] = None
        self._sync_expression = ""
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start background processing and the periodic cleanup timers."""
        if self._started:
            return
        self._started = True
        self.processor.start_processing()
        self.cache.start_cleanup_timer(self.settings.get("cache.cleanup_interval_seconds"))
        self.resources.start_cleanup_timer(
            self.settings.get("resources.cleanup_interval_seconds"),
            self.settings.get("resources.max_idle_seconds"),
        )

    def shutdown(self) -> None:
        self.filter_engine.dispose()
        self.processor.shutdown()
        self.cache.shutdown()
        self.resources.shutdown()
        self.event_bus.shutdown()
        self._started = False

    def __enter__(self) -> "TaskViewEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Interactive operations
    # ------------------------------------------------------------------

    def load_records(self, records: Iterable[TaskRecord]) -> int:
        """Replace the backing records and recompute the visible results."""
        self.records.set_items(list(records))
        return self.refresh()

    def query(self, text: str) -> ParsedQuery:
        parsed = self.filter_engine.apply_query(text)
        self.refresh()
        return parsed

    def set_sort(self, field: Optional[str], descending: bool = False) -> None:
        """Sort by *field* (``urgency``, ``due`` or ``project``); ``None`` clears."""
        self.filter_engine.set_sorter(create_sorter(field, descending) if field else None)
        self.refresh()

    def refresh(self) -> int:
        """Re-run the filter pipeline into the viewport; returns the result count."""
        with self.monitor.track("filter"):
            results = self.filter_engine.get_filtered_results()
        self.results.set_items(results)
        self.viewport.refresh()
        return len(results)

    def render(self) -> List[str]:
        with self.monitor.track("render"):
            lines = self.viewport.render()
        self.monitor.record_frame()
        return lines

    def apply_pending_updates(self) -> bool:
        """Install records staged by a background sync or save."""
        with self._pending_lock:
            pending, self._pending_records = self._pending_records, None
        if pending is None:
            return False
        self.load_records(pending)
        return True

    # ------------------------------------------------------------------
    # Background operations
    # ------------------------------------------------------------------

    def sync(self, filter_expression: str = "") -> str:
        """Fetch records from the provider on a worker; returns the task id."""
        provider = self._require_provider()
        self._sync_expression = filter_expression
        self.start()

        def fetch() -> int:
            records = provider.get_records(filter_expression)
            self._stage(records, reason="sync")
            return len(records)

        return self.processor.queue_task(fetch, name="sync")

    def save_record(self, record: TaskRecord) -> str:
        """Validate *record* now and hand the write to a worker.

        Invalid records are rejected here with :class:`InvalidRecordError`;
        a provider-side failure fails the background task instead.
        """
        provider = self._require_provider()
        validation = provider.validate_record(record)
        if not validation.valid:
            raise InvalidRecordError("; ".join(validation.errors))
        self.start()
        expression = self._sync_expression

        def save() -> TaskRecord:
            result = provider.save_record(record)
            if not result.success:
                raise RecordSaveError(result.error or "provider rejected the record")
            keys = [record.key] if record.key else []
            self._stage(provider.get_records(expression), reason="save", keys=keys)
            return result.record or record

        name = f"save {record.key or record.description}"
        return self.processor.queue_task(save, name=name, priority=TaskPriority.HIGH)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statistics(self) -> Dict[str, Any]:
        cache_stats = self.cache.get_statistics()
        return {
            "records": self.records.get_total_count(),
            "results": self.results.get_total_count(),
            "filters": [str(f) for f in self.filter_engine.filters],
            "sorter": self.filter_engine.sorter.cache_key if self.filter_engine.sorter else None,
            "scroll_position": self.viewport.scroll_position,
            "cache": {
                "hits": cache_stats.hits,
                "misses": cache_stats.misses,
                "evictions": cache_stats.evictions,
                "total_requests": cache_stats.total_requests,
                "hit_rate": cache_stats.hit_rate,
                "memory_usage": {
                    "total_bytes": cache_stats.memory_usage.total_bytes,
                    "total_mb": cache_stats.memory_usage.total_mb,
                    "entry_count": cache_stats.memory_usage.entry_count,
                },
            },
            "background": {
                "active": self.processor.get_active_task_count(),
                "queued": self.processor.get_queued_task_count(),
                "completed": len(self.processor.completed_tasks()),
            },
            "performance": self.monitor.get_statistics(),
            "errors": self.error_handler.error_counts(),
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_provider(self) -> IRecordProvider:
        if self.provider is None:
            raise ProviderNotConfiguredError("No record provider configured")
        return self.provider

    def _stage(self, records: List[TaskRecord], reason: str, keys: Optional[List[str]] = None) -> None:
        # Runs on a worker thread.
        with self._pending_lock:
            self._pending_records = list(records)
        self.event_bus.publish(RecordsChangedEvent(reason=reason, record_keys=list(keys or [])))
