"""Record predicates and their AND/OR composition.

Every filter exposes :meth:`Filter.matches` and a canonical
:attr:`Filter.cache_key`.  Two filters with the same key select the same
records, which is what the filter engine relies on for cache keys and for
rejecting duplicates.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from ..domain.record import Priority, TaskRecord, TaskStatus
from ..errors import InvalidFilterError, InvalidRecordError


class Filter(ABC):
    """A named predicate over a :class:`TaskRecord`."""

    name: str = "filter"

    @abstractmethod
    def matches(self, record: TaskRecord) -> bool:
        pass

    @property
    @abstractmethod
    def cache_key(self) -> str:
        pass

    def describe(self) -> str:
        return self.cache_key

    def __call__(self, record: TaskRecord) -> bool:
        return self.matches(record)

    def __str__(self) -> str:
        return self.describe()


def _frozen_values(values: Iterable, parse, label: str) -> FrozenSet:
    if isinstance(values, (str, Enum)):
        values = [values]
    try:
        parsed = frozenset(parse(value) for value in values)
    except InvalidRecordError as exc:
        raise InvalidFilterError(str(exc)) from None
    if not parsed:
        raise InvalidFilterError(f"{label} filter needs at least one value")
    return parsed


@dataclass(frozen=True)
class StatusFilter(Filter):
    statuses: FrozenSet[TaskStatus]
    name = "status"

    def __post_init__(self) -> None:
        object.__setattr__(self, "statuses", _frozen_values(self.statuses, TaskStatus.parse, "status"))

    def matches(self, record: TaskRecord) -> bool:
        return record.status in self.statuses

    @property
    def cache_key(self) -> str:
        return "status:" + ",".join(sorted(status.value for status in self.statuses))


@dataclass(frozen=True)
class ProjectFilter(Filter):
    """Exact project match; ``include_subprojects`` also accepts ``name.*``."""

    projects: FrozenSet[str]
    include_subprojects: bool = False
    name = "project"

    def __post_init__(self) -> None:
        object.__setattr__(self, "projects", _frozen_values(self.projects, str, "project"))

    def matches(self, record: TaskRecord) -> bool:
        if record.project in self.projects:
            return True
        if self.include_subprojects:
            return any(record.project.startswith(project + ".") for project in self.projects)
        return False

    @property
    def cache_key(self) -> str:
        suffix = ".*" if self.include_subprojects else ""
        return "project:" + ",".join(sorted(self.projects)) + suffix


@dataclass(frozen=True)
class PriorityFilter(Filter):
    priorities: FrozenSet[Priority]
    name = "priority"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "priorities", _frozen_values(self.priorities, Priority.parse, "priority")
        )

    def matches(self, record: TaskRecord) -> bool:
        return record.priority in self.priorities

    @property
    def cache_key(self) -> str:
        return "priority:" + ",".join(sorted(priority.value for priority in self.priorities))


@dataclass(frozen=True)
class TagFilter(Filter):
    tag: str
    include: bool = True
    name = "tag"

    def __post_init__(self) -> None:
        if not isinstance(self.tag, str) or not self.tag.strip() or " " in self.tag:
            raise InvalidFilterError(f"Invalid tag: {self.tag!r}")

    def matches(self, record: TaskRecord) -> bool:
        return (self.tag in record.tags) == self.include

    @property
    def cache_key(self) -> str:
        return f"tag:{'+' if self.include else '-'}{self.tag}"


@dataclass(frozen=True)
class UrgencyRangeFilter(Filter):
    """Urgency within ``[minimum, maximum]`` (or the open interval)."""

    minimum: Optional[float] = None
    maximum: Optional[float] = None
    inclusive: bool = True
    name = "urgency"

    def __post_init__(self) -> None:
        try:
            low = -math.inf if self.minimum is None else float(self.minimum)
            high = math.inf if self.maximum is None else float(self.maximum)
        except (TypeError, ValueError):
            raise InvalidFilterError(
                f"urgency bounds must be numbers, got {self.minimum!r}, {self.maximum!r}"
            ) from None
        if math.isnan(low) or math.isnan(high):
            raise InvalidFilterError("urgency bounds must be numbers")
        if low > high:
            raise InvalidFilterError(f"urgency range is empty: {low} > {high}")
        object.__setattr__(self, "minimum", low)
        object.__setattr__(self, "maximum", high)

    def matches(self, record: TaskRecord) -> bool:
        value = record.urgency
        if self.inclusive:
            return self.minimum <= value <= self.maximum
        return self.minimum < value < self.maximum

    @property
    def cache_key(self) -> str:
        left, right = ("[", "]") if self.inclusive else ("(", ")")
        return f"urgency:{left}{self.minimum},{self.maximum}{right}"


@dataclass(frozen=True)
class DueDateRangeFilter(Filter):
    """Due date within ``[start, end]``; records without a due date never match."""

    start: Optional[date] = None
    end: Optional[date] = None
    name = "due"

    def __post_init__(self) -> None:
        if self.start is None and self.end is None:
            raise InvalidFilterError("due range needs a start or an end date")
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidFilterError(f"due range is empty: {self.start} > {self.end}")

    def matches(self, record: TaskRecord) -> bool:
        if record.due is None:
            return False
        if self.start is not None and record.due < self.start:
            return False
        if self.end is not None and record.due > self.end:
            return False
        return True

    @property
    def cache_key(self) -> str:
        start = self.start.isoformat() if self.start else ""
        end = self.end.isoformat() if self.end else ""
        return f"due:{start}..{end}"


@dataclass(frozen=True)
class TextFilter(Filter):
    """Substring search over the description."""

    text: str
    case_sensitive: bool = False
    name = "text"

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text:
            raise InvalidFilterError("text filter needs a non-empty string")

    def matches(self, record: TaskRecord) -> bool:
        if self.case_sensitive:
            return self.text in record.description
        return self.text.casefold() in record.description.casefold()

    @property
    def cache_key(self) -> str:
        return f"text:{'cs' if self.case_sensitive else 'ci'}:{self.text}"


@dataclass(frozen=True)
class HasDueFilter(Filter):
    expected: bool = True
    name = "has_due"

    def matches(self, record: TaskRecord) -> bool:
        return (record.due is not None) == self.expected

    @property
    def cache_key(self) -> str:
        return f"has_due:{str(self.expected).lower()}"


@dataclass(frozen=True)
class HasProjectFilter(Filter):
    expected: bool = True
    name = "has_project"

    def matches(self, record: TaskRecord) -> bool:
        return bool(record.project) == self.expected

    @property
    def cache_key(self) -> str:
        return f"has_project:{str(self.expected).lower()}"


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class FilterGroup(Filter):
    """Children combined with AND or OR; groups nest freely.

    An empty AND group matches everything and an empty OR group matches
    nothing, mirroring :func:`all` and :func:`any`.
    """

    filters: Tuple[Filter, ...] = field(default_factory=tuple)
    logic: Union[LogicOperator, str] = LogicOperator.AND
    name = "group"

    def __post_init__(self) -> None:
        logic = self.logic
        if not isinstance(logic, LogicOperator):
            try:
                logic = LogicOperator(str(logic).upper())
            except ValueError:
                raise InvalidFilterError(f"Unknown filter group logic: {self.logic!r}") from None
        object.__setattr__(self, "logic", logic)
        children = tuple(self.filters)
        for child in children:
            if not isinstance(child, Filter):
                raise InvalidFilterError(f"FilterGroup children must be filters, got {child!r}")
        object.__setattr__(self, "filters", children)

    def matches(self, record: TaskRecord) -> bool:
        if self.logic is LogicOperator.AND:
            return all(child.matches(record) for child in self.filters)
        return any(child.matches(record) for child in self.filters)

    @property
    def cache_key(self) -> str:
        inner = "|".join(child.cache_key for child in self.filters)
        return f"{self.logic.value}({inner})"


def all_match(filters: Sequence[Filter], record: TaskRecord) -> bool:
    """AND the top-level *filters*; an empty sequence matches everything."""
    return all(f.matches(record) for f in filters)
