from dataclasses import dataclass

from .bus import Event


@dataclass(kw_only=True)
class PerformanceMetricEvent(Event):
    operation_name: str = ""
    duration_ms: float = 0.0
    memory_delta_bytes: int = 0
    memory_usage_bytes: int = 0


@dataclass(kw_only=True)
class PerformanceBottleneckEvent(Event):
    operation_name: str = ""
    duration_ms: float = 0.0
    memory_usage_bytes: int = 0
    threshold_ms: float = 0.0


@dataclass(kw_only=True)
class ResourcesCleanedUpEvent(Event):
    count: int = 0
