"""In-memory record provider backed by a ``task export`` snapshot."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.query_parser import QueryParser
from ..domain.ports import IRecordProvider, SaveResult, ValidationResult
from ..domain.record import TaskRecord, TaskStatus, records_from_export
from ..errors import InvalidRecordError

LOGGER = logging.getLogger(__name__)


class InMemoryRecordProvider(IRecordProvider):
    """Keeps records in a list; saves replace by uuid/id or append.

    ``get_records`` understands the engine query language so that callers
    can push a filter expression down to the provider the same way they
    would with the real ``task`` binary.
    """

    def __init__(self, records: Iterable[TaskRecord] = ()) -> None:
        self._records: List[TaskRecord] = list(records)
        self._lock = threading.Lock()

    @classmethod
    def from_export_file(cls, path: Path) -> "InMemoryRecordProvider":
        """Load a JSON array produced by ``task export``; bad rows are skipped."""

        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, list):
            raise InvalidRecordError(f"{path}: expected a JSON array of tasks")
        records, errors = records_from_export(payload)
        for index, message in errors:
            LOGGER.warning("Skipping task #%d in %s: %s", index, path, message)
        return cls(records)

    def get_records(self, filter_expression: str = "") -> List[TaskRecord]:
        with self._lock:
            records = list(self._records)
        if not filter_expression.strip():
            return records
        filters = QueryParser().parse(filter_expression).filters
        return [record for record in records if all(f.matches(record) for f in filters)]

    def save_record(self, record: TaskRecord) -> SaveResult:
        validation = self.validate_record(record)
        if not validation.valid:
            return SaveResult(success=False, error="; ".join(validation.errors))
        with self._lock:
            index = self._find_index(record)
            if index is None:
                self._records.append(record)
            else:
                self._records[index] = record
        return SaveResult(success=True, record=record)

    def validate_record(self, record: TaskRecord) -> ValidationResult:
        errors: list[str] = []
        if not isinstance(record, TaskRecord):
            return ValidationResult(valid=False, errors=["not a TaskRecord"])
        if record.status is TaskStatus.WAITING and record.extra.get("wait") is None:
            errors.append("waiting tasks need a 'wait' date")
        if any(not tag or " " in tag for tag in record.tags):
            errors.append("tags must be non-empty and contain no spaces")
        return ValidationResult(valid=not errors, errors=errors)

    def _find_index(self, record: TaskRecord) -> Optional[int]:
        for index, existing in enumerate(self._records):
            if record.uuid and existing.uuid == record.uuid:
                return index
            if not record.uuid and record.id is not None and existing.id == record.id:
                return index
        return None
