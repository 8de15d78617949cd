from .bus import Event, EventBus, SubscriberErrorEvent, Subscription
from .cache_events import (
    CacheCleanupEvent,
    CacheClearedEvent,
    CacheEntryAddedEvent,
    CacheEntryInvalidatedEvent,
    CacheEvictionEvent,
    CachePatternInvalidatedEvent,
)
from .filter_events import FilterResultsChangedEvent, FiltersChangedEvent, RecordsChangedEvent
from .performance_events import (
    PerformanceBottleneckEvent,
    PerformanceMetricEvent,
    ResourcesCleanedUpEvent,
)
from .settings_events import SettingsChangedEvent
from .task_events import (
    TaskCancelledEvent,
    TaskCompletedEvent,
    TaskFailedEvent,
    TaskQueuedEvent,
    TaskStartedEvent,
)
from .viewport_events import ItemVisibilityChangedEvent, ViewportScrolledEvent

__all__ = [
    "CacheCleanupEvent",
    "CacheClearedEvent",
    "CacheEntryAddedEvent",
    "CacheEntryInvalidatedEvent",
    "CacheEvictionEvent",
    "CachePatternInvalidatedEvent",
    "Event",
    "EventBus",
    "FilterResultsChangedEvent",
    "FiltersChangedEvent",
    "ItemVisibilityChangedEvent",
    "PerformanceBottleneckEvent",
    "PerformanceMetricEvent",
    "RecordsChangedEvent",
    "ResourcesCleanedUpEvent",
    "SettingsChangedEvent",
    "SubscriberErrorEvent",
    "Subscription",
    "TaskCancelledEvent",
    "TaskCompletedEvent",
    "TaskFailedEvent",
    "TaskQueuedEvent",
    "TaskStartedEvent",
    "ViewportScrolledEvent",
]
