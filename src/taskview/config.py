"""Default configuration values for taskview."""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

# Filter results are cached for five minutes unless the caller asks otherwise.
DEFAULT_CACHE_TTL_SEC: Final[float] = 300.0
DEFAULT_CACHE_MAX_MEMORY_BYTES: Final[int] = 64 * 1024 * 1024
DEFAULT_CACHE_LEVEL: Final[str] = "L1"

# Each eviction round drops at least this share of the current entries.
CACHE_EVICTION_FRACTION: Final[float] = 0.25
CACHE_CLEANUP_INTERVAL_SEC: Final[float] = 60.0

# Used when an object cannot be serialised for size estimation at all.
CACHE_FALLBACK_ENTRY_BYTES: Final[int] = 1024

# Cache keys produced by the filter engine share this prefix so that
# ``invalidate_by_pattern(FILTER_CACHE_PREFIX + "*")`` clears them together.
FILTER_CACHE_PREFIX: Final[str] = "filter:"

# ---------------------------------------------------------------------------
# Background processing
# ---------------------------------------------------------------------------

DEFAULT_MAX_CONCURRENT_TASKS: Final[int] = 4
COMPLETED_TASK_HISTORY: Final[int] = 200

# ---------------------------------------------------------------------------
# Performance monitoring
# ---------------------------------------------------------------------------

BOTTLENECK_THRESHOLD_MS: Final[float] = 100.0
FRAME_WINDOW_SIZE: Final[int] = 60

# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

DEFAULT_POOL_MAX_SIZE: Final[int] = 20
RESOURCE_CLEANUP_INTERVAL_SEC: Final[float] = 120.0

# ---------------------------------------------------------------------------
# Viewport
# ---------------------------------------------------------------------------

DEFAULT_VIEWPORT_WIDTH: Final[int] = 80
DEFAULT_VIEWPORT_HEIGHT: Final[int] = 24

# Number of worker threads used by ``EventBus`` for asynchronous dispatch.
EVENT_BUS_WORKERS: Final[int] = 4
