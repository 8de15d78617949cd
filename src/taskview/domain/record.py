"""Task record model as exported by TaskWarrior."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from ..errors import InvalidRecordError
from ..utils.dates import format_export_date, parse_date

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# Keys understood by ``TaskRecord``; everything else in an export row is kept
# in ``extra`` so it can be written back untouched.
_KNOWN_KEYS = frozenset(
    {"id", "uuid", "description", "status", "project", "priority", "urgency", "due", "tags"}
)


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DELETED = "deleted"
    WAITING = "waiting"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidRecordError(f"Unknown status: {value!r}") from None


class Priority(str, Enum):
    HIGH = "H"
    MEDIUM = "M"
    LOW = "L"

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidRecordError(f"Unknown priority: {value!r}") from None


@dataclass(frozen=True)
class TaskRecord:
    """Immutable snapshot of one task.

    Records are owned by the provider; the engine never mutates them.  Edits
    are expressed by building a new record with :meth:`replace` and routing
    it back through ``RecordProvider.save_record``.
    """

    description: str
    status: TaskStatus = TaskStatus.PENDING
    project: str = ""
    priority: Optional[Priority] = None
    urgency: float = 0.0
    due: Optional[date] = None
    tags: FrozenSet[str] = frozenset()
    uuid: Optional[str] = None
    id: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.description, str) or not self.description.strip():
            raise InvalidRecordError("description must be a non-empty string")
        object.__setattr__(self, "status", TaskStatus.parse(self.status))
        if self.priority is not None and self.priority != "":
            object.__setattr__(self, "priority", Priority.parse(self.priority))
        else:
            object.__setattr__(self, "priority", None)
        object.__setattr__(self, "project", self.project or "")
        try:
            object.__setattr__(self, "urgency", float(self.urgency or 0.0))
        except (TypeError, ValueError):
            raise InvalidRecordError(f"urgency must be numeric, got {self.urgency!r}") from None
        if self.due is not None and (isinstance(self.due, datetime) or not isinstance(self.due, date)):
            parsed = parse_date(self.due)
            if parsed is None:
                raise InvalidRecordError(f"Unparseable due date: {self.due!r}")
            object.__setattr__(self, "due", parsed)
        if isinstance(self.tags, str):
            raise InvalidRecordError("tags must be a collection of strings, not a string")
        object.__setattr__(self, "tags", frozenset(str(tag) for tag in self.tags or ()))
        if self.uuid is not None and not _UUID_RE.match(str(self.uuid)):
            raise InvalidRecordError(f"Malformed uuid: {self.uuid!r}")

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def key(self) -> Optional[str]:
        """Stable identity used to diff visible rows; ``None`` without uuid or id."""
        if self.uuid:
            return self.uuid
        if self.id is not None:
            return str(self.id)
        return None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def replace(self, **changes: Any) -> "TaskRecord":
        return dataclasses.replace(self, **changes)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskRecord":
        """Build a record from one row of ``task export`` JSON."""

        if not isinstance(data, Mapping):
            raise InvalidRecordError(f"Record must be a mapping, got {type(data).__name__}")
        due = data.get("due")
        parsed_due = parse_date(due) if due not in (None, "") else None
        if due not in (None, "") and parsed_due is None:
            raise InvalidRecordError(f"Unparseable due date: {due!r}")
        raw_id = data.get("id")
        try:
            record_id = int(raw_id) if raw_id not in (None, "", 0) else None
        except (TypeError, ValueError):
            raise InvalidRecordError(f"id must be an integer, got {raw_id!r}") from None
        tags = data.get("tags") or ()
        if isinstance(tags, str):
            tags = [part for part in tags.split(",") if part]
        return cls(
            description=data.get("description", ""),
            status=data.get("status", TaskStatus.PENDING),
            project=data.get("project") or "",
            priority=data.get("priority") or None,
            urgency=data.get("urgency", 0.0),
            due=parsed_due,
            tags=frozenset(tags),
            uuid=data.get("uuid") or None,
            id=record_id,
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload["description"] = self.description
        payload["status"] = self.status.value
        payload["urgency"] = self.urgency
        if self.id is not None:
            payload["id"] = self.id
        if self.uuid:
            payload["uuid"] = self.uuid
        if self.project:
            payload["project"] = self.project
        if self.priority is not None:
            payload["priority"] = self.priority.value
        if self.due is not None:
            payload["due"] = format_export_date(self.due)
        if self.tags:
            payload["tags"] = sorted(self.tags)
        return payload


def records_from_export(rows: Iterable[Mapping[str, Any]]) -> tuple[list[TaskRecord], list[tuple[int, str]]]:
    """Convert export rows, skipping (and reporting) rows with a bad shape."""

    records: list[TaskRecord] = []
    errors: list[tuple[int, str]] = []
    for index, row in enumerate(rows):
        try:
            records.append(TaskRecord.from_dict(row))
        except InvalidRecordError as exc:
            errors.append((index, str(exc)))
    return records, errors
