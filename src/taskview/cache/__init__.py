from .manager import CacheEntry, CacheManager, estimate_size
from .stats import CacheStatistics, CacheStats, CacheStatsCollector, MemoryUsage

__all__ = [
    "CacheEntry",
    "CacheManager",
    "CacheStatistics",
    "CacheStats",
    "CacheStatsCollector",
    "MemoryUsage",
    "estimate_size",
]
