"""Schema helpers for the engine settings file."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from .. import config

_POSITIVE_NUMBER = {"type": "number", "exclusiveMinimum": 0}
_POSITIVE_INT = {"type": "integer", "minimum": 1}

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "taskview/settings.schema.json",
    "type": "object",
    "required": ["schema", "cache", "background", "performance", "viewport", "resources"],
    "properties": {
        "schema": {"const": "taskview/settings@1"},
        "cache": {
            "type": "object",
            "properties": {
                "max_memory_mb": _POSITIVE_NUMBER,
                "default_ttl_seconds": _POSITIVE_NUMBER,
                "cleanup_interval_seconds": _POSITIVE_NUMBER,
                "filter_results_ttl_seconds": _POSITIVE_NUMBER,
            },
            "additionalProperties": True,
        },
        "background": {
            "type": "object",
            "properties": {
                "max_concurrent_tasks": _POSITIVE_INT,
                "history_size": _POSITIVE_INT,
            },
            "additionalProperties": True,
        },
        "performance": {
            "type": "object",
            "properties": {
                "bottleneck_threshold_ms": _POSITIVE_NUMBER,
                "frame_window": _POSITIVE_INT,
            },
            "additionalProperties": True,
        },
        "viewport": {
            "type": "object",
            "properties": {
                "width": _POSITIVE_INT,
                "height": _POSITIVE_INT,
            },
            "additionalProperties": True,
        },
        "resources": {
            "type": "object",
            "properties": {
                "cleanup_interval_seconds": _POSITIVE_NUMBER,
                "max_idle_seconds": {"type": "number", "minimum": 0},
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "taskview/settings@1",
    "cache": {
        "max_memory_mb": config.DEFAULT_CACHE_MAX_MEMORY_BYTES / (1024 * 1024),
        "default_ttl_seconds": config.DEFAULT_CACHE_TTL_SEC,
        "cleanup_interval_seconds": config.CACHE_CLEANUP_INTERVAL_SEC,
        "filter_results_ttl_seconds": config.DEFAULT_CACHE_TTL_SEC,
    },
    "background": {
        "max_concurrent_tasks": config.DEFAULT_MAX_CONCURRENT_TASKS,
        "history_size": config.COMPLETED_TASK_HISTORY,
    },
    "performance": {
        "bottleneck_threshold_ms": config.BOTTLENECK_THRESHOLD_MS,
        "frame_window": config.FRAME_WINDOW_SIZE,
    },
    "viewport": {
        "width": config.DEFAULT_VIEWPORT_WIDTH,
        "height": config.DEFAULT_VIEWPORT_HEIGHT,
    },
    "resources": {
        "cleanup_interval_seconds": config.RESOURCE_CLEANUP_INTERVAL_SEC,
        "max_idle_seconds": 0,
    },
}

_SECTIONS = ("cache", "background", "performance", "viewport", "resources")

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key in _SECTIONS and isinstance(value, dict):
                target = merged.setdefault(key, {})
                for sub_key, sub_value in value.items():
                    target[sub_key] = sub_value
                continue
            merged[key] = value
    _validator.validate(merged)
    return merged


def validate_settings(data: dict[str, Any]) -> None:
    """Validate *data* against the settings schema."""

    _validator.validate(data)


__all__ = ["DEFAULT_SETTINGS", "SETTINGS_SCHEMA", "merge_with_defaults", "validate_settings"]
