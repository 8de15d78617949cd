"""Filterable, index-addressable view over a backing sequence."""

from __future__ import annotations

import itertools
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")

Predicate = Callable[[T], bool]

# One process-wide sequence: no two sources, or two states of one source,
# share a version.
_VERSIONS = itertools.count(1)


class VirtualDataSource(Generic[T]):
    """Map logical positions onto a backing sequence.

    With no predicate the mapping is the identity.  :meth:`set_filter`
    precomputes the list of backing positions that satisfy the predicate so
    that :meth:`get_item` and :meth:`get_range` stay O(1) per item no matter
    how selective the filter is.

    Out-of-range reads return ``None`` or an empty list; they never raise.
    Not thread-safe: owned by the interactive thread.
    """

    def __init__(self, items: Sequence[T] = ()) -> None:
        self._items: Sequence[T] = items
        self._predicate: Optional[Predicate] = None
        self._index_map: Optional[List[int]] = None
        self._version = next(_VERSIONS)

    # -- properties --------------------------------------------------------

    @property
    def version(self) -> int:
        """Changes whenever the backing items or the predicate change.

        Unique across all sources in the process, so it can stand in for the
        source identity in cache keys.
        """
        return self._version

    @property
    def predicate(self) -> Optional[Predicate]:
        return self._predicate

    @property
    def backing_count(self) -> int:
        return len(self._items)

    # -- mutation ----------------------------------------------------------

    def set_items(self, items: Sequence[T]) -> None:
        """Swap the backing sequence, re-applying the active predicate."""
        self._items = items
        self._rebuild()

    def set_filter(self, predicate: Optional[Predicate]) -> None:
        self._predicate = predicate
        self._rebuild()

    # -- reads -------------------------------------------------------------

    def get_total_count(self) -> int:
        if self._index_map is None:
            return len(self._items)
        return len(self._index_map)

    def __len__(self) -> int:
        return self.get_total_count()

    def get_item(self, index: int) -> Optional[T]:
        if index < 0 or index >= self.get_total_count():
            return None
        if self._index_map is None:
            return self._items[index]
        return self._items[self._index_map[index]]

    def get_range(self, start: int, count: int) -> List[T]:
        total = self.get_total_count()
        if count <= 0 or start < 0 or start >= total:
            return []
        stop = min(start + count, total)
        if self._index_map is None:
            return list(self._items[start:stop])
        return [self._items[pos] for pos in self._index_map[start:stop]]

    def get_all(self) -> List[T]:
        return self.get_range(0, self.get_total_count())

    # -- internal ----------------------------------------------------------

    def _rebuild(self) -> None:
        if self._predicate is None:
            self._index_map = None
        else:
            predicate = self._predicate
            self._index_map = [pos for pos, item in enumerate(self._items) if predicate(item)]
        self._version = next(_VERSIONS)
