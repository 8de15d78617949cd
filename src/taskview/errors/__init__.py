"""Custom exception hierarchy for taskview."""

from __future__ import annotations


class TaskViewError(Exception):
    """Base class for all custom errors raised by taskview."""


# --- 3-layer hierarchy ---

class DomainError(TaskViewError):
    """Base class for domain-level errors."""


class InfrastructureError(TaskViewError):
    """Base class for infrastructure-level errors."""


class ApplicationError(TaskViewError):
    """Base class for application-level errors."""


# --- Domain errors ---

class InvalidRecordError(DomainError):
    """Raised when a task record does not have a valid shape."""


class InvalidFilterError(DomainError):
    """Raised when a filter or filter group is constructed with bad arguments."""


class InvalidSorterError(DomainError):
    """Raised when a sorter is requested for an unknown field."""


class QuerySyntaxError(DomainError):
    """Raised for a single malformed query component."""


# --- Application errors ---

class InvalidTaskError(ApplicationError):
    """Raised when a background task cannot be queued."""


class InvalidTaskStateError(ApplicationError):
    """Raised when a background task is moved along an illegal transition."""


class ProviderNotConfiguredError(ApplicationError):
    """Raised when an operation needs a record provider and none is set."""


class RecordSaveError(ApplicationError):
    """Raised inside a save task when the provider rejects the record."""


class ProcessorStoppedError(ApplicationError):
    """Raised when work is submitted to a processor that has been shut down."""


# --- Infrastructure errors ---

class ResourceError(InfrastructureError):
    """Base class for pooled and tracked resource failures."""


class PoolExhaustedError(ResourceError):
    """Raised when a memory pool has reached its hard size limit."""


class ResourceNotFoundError(ResourceError):
    """Raised when a pool or tracked resource name is unknown."""


# --- Settings errors ---

class SettingsError(TaskViewError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
