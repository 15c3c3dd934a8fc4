"""
Exception hierarchy for migration and reconciliation runs.

Per-record errors (ValidationError, LoadError) are isolated by the cursor
migrator. SourceUnavailable is fatal and travels to the invocation boundary.
SinkError is logged by the reconciliation handler and never invalidates the
report already built in memory.
"""

from collections.abc import Iterable


class MigrationToolError(Exception):
    """Base exception for all migration tool errors."""

    pass


class ConfigurationError(MigrationToolError):
    """Raised when the invocation event or environment is invalid."""

    pass


class ValidationError(MigrationToolError):
    """
    Raised when a legacy record does not conform to its entity schema.

    Attributes:
        fields: Sorted names of the offending fields
        details: Human-readable messages, one per schema violation
    """

    def __init__(
        self,
        message: str,
        fields: Iterable[str] = (),
        details: Iterable[str] = (),
    ):
        self.fields = sorted(set(fields))
        self.details = list(details)
        if self.fields:
            message = f"{message} (fields: {', '.join(self.fields)})"
        super().__init__(message)


class LoadError(MigrationToolError):
    """Raised when inserting a row fails for a reason other than a duplicate."""

    pass


class DuplicateRowError(LoadError):
    """Raised by a store when an insert hits the identity unique constraint."""

    pass


class SourceUnavailable(MigrationToolError):
    """Raised when a cursor, store or count source cannot be reached."""

    pass


class SinkError(MigrationToolError):
    """Raised when a report cannot be persisted to its destination."""

    pass
