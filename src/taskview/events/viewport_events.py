from dataclasses import dataclass, field
from typing import Hashable, List

from .bus import Event


@dataclass(kw_only=True)
class ViewportScrolledEvent(Event):
    old_position: int = 0
    new_position: int = 0
    max_position: int = 0
    total_items: int = 0


@dataclass(kw_only=True)
class ItemVisibilityChangedEvent(Event):
    newly_visible: List[Hashable] = field(default_factory=list)
    newly_invisible: List[Hashable] = field(default_factory=list)
    total_visible: int = 0
