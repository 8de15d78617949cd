"""Date helpers shared by the record model and the query parser."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.tz import gettz


def _local_tz():
    return gettz() or datetime.now().astimezone().tzinfo or timezone.utc


def parse_date(value: Any) -> Optional[date]:
    """Return *value* as a local calendar date, or ``None`` when unparseable.

    Accepts :class:`date`/:class:`datetime` objects, ISO-8601 strings in
    extended (``2026-10-19``) or basic (``20261019T040000Z``) form, which is
    what ``task export`` emits.  Aware timestamps are converted to local time
    before the date is taken so that a task due at local midnight does not
    land on the previous day.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = isoparse(candidate)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(_local_tz())
    return parsed.date()


def format_export_date(value: date) -> str:
    """Format *value* the way ``task export`` writes dates (UTC, basic form)."""

    local_midnight = datetime(value.year, value.month, value.day, tzinfo=_local_tz())
    return local_midnight.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def end_of_week(today: date) -> date:
    """Return the Sunday that closes the week containing *today*."""

    return today + timedelta(days=6 - today.weekday())
