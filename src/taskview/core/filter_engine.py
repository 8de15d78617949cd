"""Applies filters and a sorter to a data source, with result caching."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Sequence, Tuple, Union

from .. import config
from ..cache.manager import CacheManager
from ..domain.record import TaskRecord
from ..errors import InvalidFilterError, InvalidSorterError
from ..events.bus import EventBus, Subscription
from ..events.filter_events import (
    FilterResultsChangedEvent,
    FiltersChangedEvent,
    RecordsChangedEvent,
)
from ..utils.hashutils import digest_key
from .data_source import VirtualDataSource
from .filters import Filter, all_match
from .query_parser import ParsedQuery, QueryParser
from .sorters import Sorter

LOGGER = logging.getLogger(__name__)

CACHE_LEVEL = "L1"


class FilterEngine:
    """Ordered top-level filters (ANDed) plus an optional sorter.

    Results are cached twice: in the shared :class:`CacheManager` (with a
    TTL, shared with anything else on the cache) and in a single local slot
    holding the last computed result.  Both are keyed by the same string,
    built from a per-engine token, the data source version, each filter's
    canonical key and the sorter.

    Mutating methods are meant to be called from the interactive thread.
    The :class:`RecordsChangedEvent` handler may run on a worker thread; it
    only drops cached state.
    """

    def __init__(
        self,
        data_source: VirtualDataSource[TaskRecord],
        cache_manager: Optional[CacheManager] = None,
        event_bus: Optional[EventBus] = None,
        cache_ttl: float = config.DEFAULT_CACHE_TTL_SEC,
        parser: Optional[QueryParser] = None,
    ) -> None:
        self._data_source = data_source
        self._cache = cache_manager
        self._event_bus = event_bus
        self._cache_ttl = cache_ttl
        self._parser = parser or QueryParser()
        self._token = uuid.uuid4().hex
        self._filters: List[Filter] = []
        self._sorter: Optional[Sorter] = None
        self._last_key: Optional[str] = None
        self._last_results: Optional[List[TaskRecord]] = None
        self._subscription: Optional[Subscription] = None
        if event_bus is not None:
            self._subscription = event_bus.subscribe(RecordsChangedEvent, self._on_records_changed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def filters(self) -> Tuple[Filter, ...]:
        return tuple(self._filters)

    @property
    def sorter(self) -> Optional[Sorter]:
        return self._sorter

    @property
    def data_source(self) -> VirtualDataSource[TaskRecord]:
        return self._data_source

    @property
    def parser(self) -> QueryParser:
        return self._parser

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_filter(self, new_filter: Filter) -> bool:
        """Append *new_filter*; returns ``False`` if an equal filter is active."""
        self._check_filter(new_filter)
        if any(existing.cache_key == new_filter.cache_key for existing in self._filters):
            return False
        self._filters.append(new_filter)
        self._filters_changed()
        return True

    def remove_filter(self, target: Union[Filter, str]) -> bool:
        """Remove a filter by instance or by canonical key."""
        key = target if isinstance(target, str) else target.cache_key
        for index, existing in enumerate(self._filters):
            if existing.cache_key == key:
                del self._filters[index]
                self._filters_changed()
                return True
        return False

    def clear_filters(self) -> None:
        self._filters.clear()
        self._filters_changed()

    def set_filters(self, filters: Sequence[Filter]) -> None:
        """Replace the whole filter list in one step (one change event)."""
        installed: List[Filter] = []
        seen = set()
        for candidate in filters:
            self._check_filter(candidate)
            if candidate.cache_key in seen:
                continue
            seen.add(candidate.cache_key)
            installed.append(candidate)
        self._filters = installed
        self._filters_changed()

    def apply_query(self, text: str) -> ParsedQuery:
        parsed = self._parser.parse(text)
        self.set_filters(parsed.filters)
        return parsed

    def set_sorter(self, sorter: Optional[Sorter]) -> None:
        if sorter is not None and not isinstance(sorter, Sorter):
            raise InvalidSorterError(f"Expected a Sorter, got {sorter!r}")
        self._sorter = sorter
        self._invalidate_local()

    def set_data_source(self, data_source: VirtualDataSource[TaskRecord]) -> None:
        self._data_source = data_source
        self._invalidate_local()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def build_cache_key(self) -> str:
        """Key for the current data source version, filters and sorter."""
        parts = [filter_.cache_key for filter_ in self._filters] or ["nofilter"]
        sort_part = self._sorter.cache_key if self._sorter is not None else "nosort"
        raw = f"v{self._data_source.version}|{'&'.join(parts)}|{sort_part}"
        return f"{self._key_prefix}{digest_key(raw)}"

    def get_filtered_results(self) -> List[TaskRecord]:
        key = self.build_cache_key()

        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                self._remember(key, cached)
                return list(cached)

        if self._last_key == key and self._last_results is not None:
            return list(self._last_results)

        total = self._data_source.get_total_count()
        candidates = self._data_source.get_range(0, total)
        if self._filters:
            filters = list(self._filters)
            results = [record for record in candidates if all_match(filters, record)]
        else:
            results = candidates
        if self._sorter is not None:
            results = self._sorter.sort(results)

        self._remember(key, results)
        if self._cache is not None:
            self._cache.set(key, results, self._cache_ttl, level=CACHE_LEVEL)

        LOGGER.debug("Filtered %d of %d records with %d filters", len(results), total, len(self._filters))
        self._publish(
            FilterResultsChangedEvent(
                result_count=len(results),
                total_count=total,
                filter_count=len(self._filters),
            )
        )
        return list(results)

    def invalidate_cache(self) -> None:
        """Drop the local slot and every shared cache entry owned by this engine."""
        self._invalidate_local()
        if self._cache is not None:
            self._cache.invalidate_by_pattern(f"{self._key_prefix}*")

    def dispose(self) -> None:
        """Unsubscribe and drop this engine's cached results."""
        self.invalidate_cache()
        if self._subscription is not None and self._event_bus is not None:
            self._event_bus.unsubscribe(self._subscription)
            self._subscription = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @property
    def _key_prefix(self) -> str:
        return f"{config.FILTER_CACHE_PREFIX}{self._token}:"

    @staticmethod
    def _check_filter(candidate: object) -> None:
        if not isinstance(candidate, Filter):
            raise InvalidFilterError(f"Expected a Filter, got {candidate!r}")

    def _remember(self, key: str, results: List[TaskRecord]) -> None:
        self._last_key = key
        self._last_results = results

    def _invalidate_local(self) -> None:
        self._last_key = None
        self._last_results = None

    def _filters_changed(self) -> None:
        self._invalidate_local()
        self._publish(
            FiltersChangedEvent(
                filter_count=len(self._filters),
                filters=[str(filter_) for filter_ in self._filters],
            )
        )

    def _on_records_changed(self, event: RecordsChangedEvent) -> None:
        LOGGER.debug("Records changed (%s); dropping cached filter results", event.reason)
        self.invalidate_cache()

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
