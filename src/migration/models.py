"""
Value types passed between the transformer, loader and migrator.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class TargetRow:
    """
    A validated relational row ready to be loaded.

    Attributes:
        entity_kind: Kind of entity the row belongs to
        identity_key: Values of the identity columns, in mapping order
        columns: Column name -> typed value (read-only view)
        mapping_version: Version of the field-mapping table that produced it
    """

    entity_kind: str
    identity_key: tuple
    columns: Mapping[str, Any]
    mapping_version: int = 1

    def __post_init__(self):
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    def __getitem__(self, column: str) -> Any:
        return self.columns[column]

    def as_dict(self) -> dict[str, Any]:
        return dict(self.columns)


class OutcomeStatus(str, Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationOutcome:
    """Result of migrating exactly one legacy record."""

    status: OutcomeStatus
    entity_kind: str
    identity_key: tuple
    surrogate_id: int | None = None
    error: str | None = None

    @classmethod
    def inserted(cls, entity_kind: str, identity_key: tuple, surrogate_id: int) -> "MigrationOutcome":
        return cls(OutcomeStatus.INSERTED, entity_kind, identity_key, surrogate_id=surrogate_id)

    @classmethod
    def skipped(cls, entity_kind: str, identity_key: tuple) -> "MigrationOutcome":
        return cls(OutcomeStatus.SKIPPED, entity_kind, identity_key)

    @classmethod
    def failed(cls, entity_kind: str, identity_key: tuple, error: str) -> "MigrationOutcome":
        return cls(OutcomeStatus.FAILED, entity_kind, identity_key, error=error)


@dataclass
class MigrationSummary:
    """Running tally for one entity table."""

    entity_kind: str
    inserted: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[MigrationOutcome] = field(default_factory=list)

    def add(self, outcome: MigrationOutcome) -> None:
        if outcome.status is OutcomeStatus.INSERTED:
            self.inserted += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append(outcome)

    @property
    def processed(self) -> int:
        return self.inserted + self.skipped + self.failed
