"""Plain-text row formatting for task records."""

from __future__ import annotations

from typing import List

from .record import TaskRecord

_PROJECT_WIDTH = 12


def fit(text: str, width: int) -> str:
    """Cut or pad *text* so that it occupies exactly *width* cells."""

    if width <= 0:
        return ""
    if len(text) > width:
        if width == 1:
            return text[:1]
        return text[: width - 1] + "…"
    return text.ljust(width)


class PlainRecordFormatter:
    """One line per record: id, priority, project, due, urgency, description."""

    def __init__(self, show_tags: bool = False) -> None:
        self._show_tags = show_tags

    def format_record(self, record: TaskRecord, width: int) -> List[str]:
        ident = str(record.id) if record.id is not None else (record.uuid or "")[:8]
        priority = record.priority.value if record.priority is not None else " "
        due = record.due.isoformat() if record.due is not None else ""
        description = record.description
        if self._show_tags and record.tags:
            description = f"{description} " + " ".join(f"+{tag}" for tag in sorted(record.tags))
        line = (
            f"{ident:>4} {priority} {fit(record.project, _PROJECT_WIDTH)} "
            f"{due:<10} {record.urgency:6.2f} {description}"
        )
        return [fit(line, width)]
