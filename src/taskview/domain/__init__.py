from .formatting import PlainRecordFormatter
from .ports import IRecordProvider, RecordFormatter, SaveResult, ValidationResult
from .record import Priority, TaskRecord, TaskStatus, records_from_export

__all__ = [
    "IRecordProvider",
    "PlainRecordFormatter",
    "Priority",
    "RecordFormatter",
    "SaveResult",
    "TaskRecord",
    "TaskStatus",
    "ValidationResult",
    "records_from_export",
]
