"""Settings file management with validation and change notifications."""

from __future__ import annotations

import json
import os
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from ..errors import SettingsLoadError, SettingsValidationError
from ..events.bus import EventBus
from ..events.settings_events import SettingsChangedEvent
from .schema import DEFAULT_SETTINGS, merge_with_defaults


def default_settings_path() -> Path:
    """Return the default settings.json location for the current platform."""

    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "taskview" / "settings.json"
        return Path.home() / "AppData" / "Roaming" / "taskview" / "settings.json"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "taskview" / "settings.json"
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "taskview" / "settings.json"
    return Path.home() / ".config" / "taskview" / "settings.json"


class SettingsManager:
    """Load, validate and persist engine settings."""

    def __init__(self, path: Path | None = None, event_bus: EventBus | None = None) -> None:
        self._path = path
        self._event_bus = event_bus
        self._data: dict[str, Any] = deepcopy(DEFAULT_SETTINGS)
        self._persist = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, event_bus: EventBus | None = None) -> "SettingsManager":
        """Build an in-memory manager (never written to disk) from *data*."""

        manager = cls(path=None, event_bus=event_bus)
        try:
            manager._data = merge_with_defaults(data)
        except ValidationError as exc:
            raise SettingsValidationError(exc.message) from exc
        manager._persist = False
        return manager

    @property
    def path(self) -> Path | None:
        return self._path

    def bind_event_bus(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> None:
        """Load the settings JSON from disk, creating defaults if missing."""

        path = self._path or default_settings_path()
        self._path = path
        if path.exists():
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise SettingsLoadError(f"{path}: {exc}") from exc
            if not isinstance(payload, dict):
                raise SettingsLoadError(f"{path}: top-level value must be an object")
        else:
            payload = None
        try:
            self._data = merge_with_defaults(payload)
        except ValidationError as exc:
            raise SettingsValidationError(exc.message) from exc
        self._write()

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return the value for *key*, supporting dotted access for nested keys."""

        target = self._data
        parts = key.split(".")
        for index, part in enumerate(parts):
            if not isinstance(target, dict) or part not in target:
                return default
            value = target[part]
            if index == len(parts) - 1:
                return value
            target = value
        return default

    def set(self, key: str, value: Any) -> None:
        """Update *key* with *value*, validate, persist and announce the change."""

        candidate = deepcopy(self._data)
        parts = key.split(".")
        target: dict[str, Any] = candidate
        for part in parts[:-1]:
            branch = target.get(part)
            if not isinstance(branch, dict):
                branch = {}
                target[part] = branch
            target = branch
        target[parts[-1]] = value
        try:
            self._data = merge_with_defaults(candidate)
        except ValidationError as exc:
            raise SettingsValidationError(exc.message) from exc
        self._write()
        if self._event_bus is not None:
            self._event_bus.publish(SettingsChangedEvent(key=key, value=value))

    def as_dict(self) -> dict[str, Any]:
        return deepcopy(self._data)

    # ------------------------------------------------------------------
    # Internal utilities
    # ------------------------------------------------------------------
    def _write(self) -> None:
        if not self._persist:
            return
        path = self._path or default_settings_path()
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(path)


__all__ = ["SettingsManager", "default_settings_path"]
