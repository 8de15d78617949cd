from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .record import TaskRecord


@dataclass(frozen=True)
class SaveResult:
    success: bool
    error: Optional[str] = None
    record: Optional[TaskRecord] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


class IRecordProvider(ABC):
    """Source of truth for task records (typically the ``task`` binary)."""

    @abstractmethod
    def get_records(self, filter_expression: str = "") -> List[TaskRecord]:
        """Return the records matching *filter_expression* ("" means all)."""
        pass

    @abstractmethod
    def save_record(self, record: TaskRecord) -> SaveResult:
        """Persist *record*; failures are reported in the result, not raised."""
        pass

    @abstractmethod
    def validate_record(self, record: TaskRecord) -> ValidationResult:
        pass


class RecordFormatter(Protocol):
    """Turns one record into display lines no wider than *width*."""

    def format_record(self, record: TaskRecord, width: int) -> List[str]: ...
