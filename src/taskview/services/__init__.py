from .background_processor import (
    BackgroundProcessor,
    BackgroundTask,
    TaskPriority,
    TaskState,
)
from .performance_monitor import MemorySnapshot, PerformanceMonitor, PerformanceSample
from .resource_manager import MemoryPool, PoolStats, ResourceManager

__all__ = [
    "BackgroundProcessor",
    "BackgroundTask",
    "MemoryPool",
    "MemorySnapshot",
    "PerformanceMonitor",
    "PerformanceSample",
    "PoolStats",
    "ResourceManager",
    "TaskPriority",
    "TaskState",
]
