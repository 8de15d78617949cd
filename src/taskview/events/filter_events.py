from dataclasses import dataclass, field
from typing import List

from .bus import Event


@dataclass(kw_only=True)
class FiltersChangedEvent(Event):
    filter_count: int = 0
    filters: List[str] = field(default_factory=list)


@dataclass(kw_only=True)
class FilterResultsChangedEvent(Event):
    result_count: int = 0
    total_count: int = 0
    filter_count: int = 0


@dataclass(kw_only=True)
class RecordsChangedEvent(Event):
    """Underlying records were reloaded or modified; cached views are stale."""
    reason: str = ""
    record_keys: List[str] = field(default_factory=list)
