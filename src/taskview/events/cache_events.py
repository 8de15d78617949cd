from dataclasses import dataclass

from .bus import Event


@dataclass(kw_only=True)
class CacheEntryAddedEvent(Event):
    key: str = ""
    level: str = ""
    size_bytes: int = 0
    ttl: float = 0.0


@dataclass(kw_only=True)
class CacheEntryInvalidatedEvent(Event):
    key: str = ""


@dataclass(kw_only=True)
class CachePatternInvalidatedEvent(Event):
    pattern: str = ""
    entries_removed: int = 0


@dataclass(kw_only=True)
class CacheClearedEvent(Event):
    entries_removed: int = 0


@dataclass(kw_only=True)
class CacheEvictionEvent(Event):
    entries_removed: int = 0
    reason: str = ""


@dataclass(kw_only=True)
class CacheCleanupEvent(Event):
    entries_removed: int = 0
