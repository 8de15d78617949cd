"""Virtual scrolling window over a :class:`VirtualDataSource`."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Hashable, List, Optional

from .. import config
from ..domain.formatting import PlainRecordFormatter, fit
from ..domain.ports import RecordFormatter
from ..events.bus import EventBus
from ..events.viewport_events import ItemVisibilityChangedEvent, ViewportScrolledEvent
from .data_source import VirtualDataSource

LOGGER = logging.getLogger(__name__)


def default_item_key(item) -> Hashable:
    """Identity used for visibility diffing: ``item.key`` when available."""
    key = getattr(item, "key", None)
    return key if key is not None else id(item)


@dataclass(frozen=True)
class ViewportState:
    width: int
    height: int
    scroll_position: int
    max_scroll_position: int
    total_items: int
    visible_keys: FrozenSet[Hashable] = field(default_factory=frozenset)


class VirtualScrollingViewport:
    """Headless viewport model.

    Tracks a scroll position clamped to ``[0, max(0, total - height)]`` and
    the slice of the data source currently on screen.  Turning records into
    text is delegated to a formatter so the class can be exercised without a
    terminal.  Owned by the interactive thread.
    """

    def __init__(
        self,
        width: int = config.DEFAULT_VIEWPORT_WIDTH,
        height: int = config.DEFAULT_VIEWPORT_HEIGHT,
        data_source: Optional[VirtualDataSource] = None,
        event_bus: Optional[EventBus] = None,
        formatter: Optional[RecordFormatter] = None,
        key_fn: Callable[[object], Hashable] = default_item_key,
    ) -> None:
        self._width = self._check_dimension("width", width)
        self._height = self._check_dimension("height", height)
        self._data_source: VirtualDataSource = data_source or VirtualDataSource()
        self._event_bus = event_bus
        self._formatter: RecordFormatter = formatter or PlainRecordFormatter()
        self._key_fn = key_fn
        self._scroll_position = 0
        self._visible_items: List = []
        self._visible_keys: "Counter[Hashable]" = Counter()
        self._recompute_visible(publish=False)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def data_source(self) -> VirtualDataSource:
        return self._data_source

    @property
    def scroll_position(self) -> int:
        return self._scroll_position

    @property
    def total_items(self) -> int:
        return self._data_source.get_total_count()

    @property
    def max_scroll_position(self) -> int:
        return max(0, self.total_items - self._height)

    @property
    def visible_items(self) -> List:
        return list(self._visible_items)

    @property
    def state(self) -> ViewportState:
        return ViewportState(
            width=self._width,
            height=self._height,
            scroll_position=self._scroll_position,
            max_scroll_position=self.max_scroll_position,
            total_items=self.total_items,
            visible_keys=frozenset(self._visible_keys),
        )

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------

    def scroll_to(self, position: int) -> bool:
        """Move to *position* after clamping; returns ``True`` if it moved."""
        target = self._clamp(position)
        if target == self._scroll_position:
            return False
        old = self._scroll_position
        self._scroll_position = target
        self._publish(
            ViewportScrolledEvent(
                old_position=old,
                new_position=target,
                max_position=self.max_scroll_position,
                total_items=self.total_items,
            )
        )
        self._recompute_visible()
        return True

    def scroll_by(self, delta: int) -> bool:
        return self.scroll_to(self._scroll_position + delta)

    def page_down(self) -> bool:
        return self.scroll_by(self._height)

    def page_up(self) -> bool:
        return self.scroll_by(-self._height)

    def scroll_to_top(self) -> bool:
        return self.scroll_to(0)

    def scroll_to_bottom(self) -> bool:
        return self.scroll_to(self.max_scroll_position)

    def ensure_visible(self, index: int) -> bool:
        """Scroll the minimum distance needed to bring *index* on screen."""
        if index < 0 or index >= self.total_items:
            return False
        if index < self._scroll_position:
            return self.scroll_to(index)
        if index >= self._scroll_position + self._height:
            return self.scroll_to(index - self._height + 1)
        return False

    # ------------------------------------------------------------------
    # Data and geometry
    # ------------------------------------------------------------------

    def set_data_source(self, data_source: VirtualDataSource) -> None:
        self._data_source = data_source
        self.refresh()

    def resize(self, width: int, height: int) -> None:
        self._width = self._check_dimension("width", width)
        self._height = self._check_dimension("height", height)
        self.refresh()

    def refresh(self) -> None:
        """Re-clamp the scroll position and recompute what is visible.

        Call after the data source changed underneath the viewport.
        """
        clamped = self._clamp(self._scroll_position)
        if clamped != self._scroll_position:
            old = self._scroll_position
            self._scroll_position = clamped
            self._publish(
                ViewportScrolledEvent(
                    old_position=old,
                    new_position=clamped,
                    max_position=self.max_scroll_position,
                    total_items=self.total_items,
                )
            )
        self._recompute_visible()

    def render(self) -> List[str]:
        """Exactly ``height`` lines, each exactly ``width`` cells wide."""
        lines: List[str] = []
        for item in self._visible_items:
            if len(lines) >= self._height:
                break
            for line in self._formatter.format_record(item, self._width):
                lines.append(fit(line, self._width))
                if len(lines) >= self._height:
                    break
        blank = " " * self._width
        lines.extend(blank for _ in range(self._height - len(lines)))
        return lines

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _clamp(self, position: int) -> int:
        return max(0, min(int(position), self.max_scroll_position))

    def _recompute_visible(self, publish: bool = True) -> None:
        items = self._data_source.get_range(self._scroll_position, self._height)
        # Counted, so rows sharing a key are still diffed one by one.
        new_keys = Counter(self._key_fn(item) for item in items)
        old_keys = self._visible_keys
        self._visible_items = items
        self._visible_keys = new_keys
        if not publish:
            return
        appeared = list((new_keys - old_keys).elements())
        disappeared = list((old_keys - new_keys).elements())
        if appeared or disappeared:
            self._publish(
                ItemVisibilityChangedEvent(
                    newly_visible=appeared,
                    newly_invisible=disappeared,
                    total_visible=len(items),
                )
            )

    @staticmethod
    def _check_dimension(name: str, value: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"viewport {name} must be a positive integer, got {value!r}")
        return value

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
