"""Directional comparators over task records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import Dict, Iterable, List, Type

from ..domain.record import TaskRecord
from ..errors import InvalidSorterError


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


class Sorter(ABC):
    """Compare two records on one field; ``descending`` flips the order.

    Sorting relies on Python's stable sort, so records that compare equal
    keep the order they had in the data source.
    """

    field: str = ""

    def __init__(self, descending: bool = False) -> None:
        self.descending = bool(descending)

    @abstractmethod
    def compare_values(self, a: TaskRecord, b: TaskRecord) -> int:
        """Ascending comparison of *a* and *b*."""
        pass

    def compare(self, a: TaskRecord, b: TaskRecord) -> int:
        result = self.compare_values(a, b)
        return -result if self.descending else result

    def sort(self, records: Iterable[TaskRecord]) -> List[TaskRecord]:
        return sorted(records, key=cmp_to_key(self.compare))

    @property
    def cache_key(self) -> str:
        return f"{self.field}:{'desc' if self.descending else 'asc'}"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.descending == other.descending

    def __hash__(self) -> int:
        return hash((type(self), self.descending))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(descending={self.descending})"


class UrgencySorter(Sorter):
    field = "urgency"

    def compare_values(self, a: TaskRecord, b: TaskRecord) -> int:
        return _cmp(a.urgency or 0.0, b.urgency or 0.0)


class DueDateSorter(Sorter):
    """Dated records first; undated records always sort last."""

    field = "due"

    def compare_values(self, a: TaskRecord, b: TaskRecord) -> int:
        return _cmp(a.due, b.due)

    def compare(self, a: TaskRecord, b: TaskRecord) -> int:
        if a.due is None or b.due is None:
            return _cmp(a.due is None, b.due is None)
        return super().compare(a, b)


class ProjectSorter(Sorter):
    """Case-sensitive lexicographic order on the raw project name."""

    field = "project"

    def compare_values(self, a: TaskRecord, b: TaskRecord) -> int:
        return _cmp(a.project or "", b.project or "")


SORTERS: Dict[str, Type[Sorter]] = {
    UrgencySorter.field: UrgencySorter,
    DueDateSorter.field: DueDateSorter,
    ProjectSorter.field: ProjectSorter,
}


def create_sorter(field: str, descending: bool = False) -> Sorter:
    try:
        sorter_cls = SORTERS[field.strip().lower()]
    except KeyError:
        raise InvalidSorterError(
            f"Unknown sort field {field!r}; expected one of {', '.join(sorted(SORTERS))}"
        ) from None
    return sorter_cls(descending=descending)
