from dataclasses import dataclass
from typing import Any

from .bus import Event


@dataclass(kw_only=True)
class SettingsChangedEvent(Event):
    key: str = ""
    value: Any = None
