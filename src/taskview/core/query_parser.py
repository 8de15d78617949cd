"""Parser for the TaskWarrior-style filter language.

Grammar (whitespace separated, every component parsed on its own)::

    +tag | -tag                       tag presence / absence
    status:<pending|completed|deleted|waiting>
    project:<name>
    priority:<H|M|L>
    due:<today|tomorrow|eow|ISO-date>
    urgency.gt:<number> | urgency.lt:<number>

A malformed component is skipped and reported in
:attr:`ParsedQuery.rejected`; it never aborts the rest of the query.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from ..errors import InvalidFilterError, QuerySyntaxError
from ..utils.dates import end_of_week, parse_date
from .filters import (
    DueDateRangeFilter,
    Filter,
    PriorityFilter,
    ProjectFilter,
    StatusFilter,
    TagFilter,
    UrgencyRangeFilter,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectedToken:
    token: str
    reason: str


@dataclass
class ParsedQuery:
    text: str = ""
    filters: List[Filter] = field(default_factory=list)
    rejected: List[RejectedToken] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejected


class QueryParser:
    """Turn a query string into a list of filters ANDed by the engine."""

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today
        self._field_parsers: Dict[str, Callable[[str], Optional[Filter]]] = {
            "status": self._parse_status,
            "project": self._parse_project,
            "priority": self._parse_priority,
            "due": self._parse_due,
            "urgency.gt": self._parse_urgency_gt,
            "urgency.lt": self._parse_urgency_lt,
        }

    def parse(self, text: str) -> ParsedQuery:
        result = ParsedQuery(text=text or "")
        for token in (text or "").split():
            try:
                parsed = self.parse_component(token)
            except (QuerySyntaxError, InvalidFilterError) as exc:
                LOGGER.warning("Ignoring query component %r: %s", token, exc)
                result.rejected.append(RejectedToken(token, str(exc)))
                continue
            if parsed is not None:
                result.filters.append(parsed)
        return result

    def parse_component(self, token: str) -> Optional[Filter]:
        """Parse one component.

        Returns ``None`` for components that are dropped silently (an
        unparseable absolute due date) and raises :class:`QuerySyntaxError`
        for anything malformed or unknown.
        """
        if token[0] in "+-" and ":" not in token:
            tag = token[1:]
            if not tag:
                raise QuerySyntaxError("missing tag name")
            return TagFilter(tag, include=token[0] == "+")

        name, sep, value = token.partition(":")
        if not sep:
            raise QuerySyntaxError("expected +tag, -tag or field:value")
        handler = self._field_parsers.get(name.lower())
        if handler is None:
            raise QuerySyntaxError(f"unknown field {name!r}")
        if not value:
            raise QuerySyntaxError(f"missing value for {name!r}")
        return handler(value)

    # ------------------------------------------------------------------
    # Field handlers
    # ------------------------------------------------------------------

    def _parse_status(self, value: str) -> Filter:
        return StatusFilter(value.split(","))

    def _parse_project(self, value: str) -> Filter:
        return ProjectFilter(value)

    def _parse_priority(self, value: str) -> Filter:
        return PriorityFilter(value.split(","))

    def _parse_due(self, value: str) -> Optional[Filter]:
        today = self._today()
        keyword = value.lower()
        if keyword == "today":
            return DueDateRangeFilter(today, today)
        if keyword == "tomorrow":
            tomorrow = today + timedelta(days=1)
            return DueDateRangeFilter(tomorrow, tomorrow)
        if keyword == "eow":
            return DueDateRangeFilter(today, end_of_week(today))
        day = parse_date(value)
        if day is None:
            LOGGER.debug("Dropping due:%s, not a recognised date", value)
            return None
        return DueDateRangeFilter(day, day)

    def _parse_urgency_gt(self, value: str) -> Filter:
        return UrgencyRangeFilter(minimum=self._number(value), inclusive=False)

    def _parse_urgency_lt(self, value: str) -> Filter:
        return UrgencyRangeFilter(maximum=self._number(value), inclusive=False)

    @staticmethod
    def _number(value: str) -> float:
        try:
            return float(value)
        except ValueError:
            raise QuerySyntaxError(f"not a number: {value!r}") from None
