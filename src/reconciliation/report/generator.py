"""
Drift report generation from a count snapshot.

The generator is side-effect free. Persisting the report is the sink's job;
the location it returns is attached with ReconciliationReport.with_location.
"""

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from reconciliation.aggregator import INDEX, LEGACY, RELATIONAL, CountSnapshot


class ReportStatus:
    """Constants for the overall report status."""

    PASS = "PASS"
    FAIL = "FAIL"


def _subtract(minuend: int | None, subtrahend: int | None) -> int | None:
    if minuend is None or subtrahend is None:
        return None
    return minuend - subtrahend


def _calculate_severity(reference_count: int | None, difference: int | None) -> str:
    """
    Calculate severity level based on count difference

    Args:
        reference_count: Count the difference is measured against
        difference: Absolute difference in counts

    Returns:
        Severity level: LOW, MEDIUM, HIGH, or CRITICAL
    """
    if not difference:
        return "LOW"
    if not reference_count:
        return "CRITICAL"

    percentage_diff = (difference / reference_count) * 100

    if percentage_diff < 0.1:
        return "LOW"
    elif percentage_diff < 1.0:
        return "MEDIUM"
    elif percentage_diff < 10.0:
        return "HIGH"
    else:
        return "CRITICAL"


@dataclass(frozen=True)
class EntityDrift:
    """
    Counts and deltas for one entity kind.

    delta is legacy minus relational; index_delta is index minus relational.
    Either is None when one of its counts is not applicable.
    """

    entity_kind: str
    legacy_count: int | None
    relational_count: int | None
    index_count: int | None = None

    @property
    def delta(self) -> int | None:
        return _subtract(self.legacy_count, self.relational_count)

    @property
    def index_delta(self) -> int | None:
        return _subtract(self.index_count, self.relational_count)

    @property
    def in_sync(self) -> bool:
        return not self.delta and not self.index_delta

    @property
    def severity(self) -> str:
        worst = max(abs(self.delta or 0), abs(self.index_delta or 0))
        reference = self.legacy_count if self.legacy_count is not None else self.index_count
        return _calculate_severity(reference, worst)

    def to_dict(self) -> dict[str, Any]:
        return {
            "counts": {
                LEGACY: self.legacy_count,
                RELATIONAL: self.relational_count,
                INDEX: self.index_count,
            },
            "delta": self.delta,
            "index_delta": self.index_delta,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    """
    One reconciliation run's drift report.

    Immutable; with_location returns a copy carrying the persisted location.
    """

    cutoff: datetime
    entities: Mapping[str, EntityDrift]
    collection_discrepancies: Mapping[str, Any] = field(default_factory=dict)
    collections_not_mapped: tuple = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    report_uri: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "entities", MappingProxyType(dict(self.entities)))
        object.__setattr__(
            self, "collection_discrepancies", MappingProxyType(dict(self.collection_discrepancies))
        )
        object.__setattr__(self, "collections_not_mapped", tuple(self.collections_not_mapped))

    @property
    def status(self) -> str:
        drifted = any(not drift.in_sync for drift in self.entities.values())
        if drifted or self.collection_discrepancies or self.collections_not_mapped:
            return ReportStatus.FAIL
        return ReportStatus.PASS

    @property
    def records_in_legacy_not_in_relational(self) -> dict[str, int | None]:
        return {kind: drift.delta for kind, drift in self.entities.items()}

    @property
    def records_in_index_not_in_relational(self) -> dict[str, int]:
        return {
            kind: drift.index_delta
            for kind, drift in self.entities.items()
            if drift.index_delta is not None
        }

    @property
    def summary(self) -> str:
        return _generate_summary(self.entities)

    def with_location(self, report_uri: str) -> "ReconciliationReport":
        return dataclasses.replace(self, report_uri=report_uri)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReconciliationReport":
        """Rebuild a report from its to_dict() form, e.g. a saved JSON report."""
        entities = {
            kind: EntityDrift(
                entity_kind=kind,
                legacy_count=entry["counts"].get(LEGACY),
                relational_count=entry["counts"].get(RELATIONAL),
                index_count=entry["counts"].get(INDEX),
            )
            for kind, entry in data.get("entities", {}).items()
        }
        return cls(
            cutoff=datetime.fromisoformat(data["cutoff"]),
            entities=entities,
            collection_discrepancies=data.get("records_not_in_relational_by_collection") or {},
            collections_not_mapped=tuple(data.get("collections_not_mapped") or ()),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            report_uri=data.get("report_uri"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "cutoff": format_timestamp(self.cutoff),
            "generated_at": format_timestamp(self.generated_at),
            "entities": {kind: drift.to_dict() for kind, drift in self.entities.items()},
            "records_in_legacy_not_in_relational": self.records_in_legacy_not_in_relational,
            "records_in_index_not_in_relational": self.records_in_index_not_in_relational,
            "collections_not_mapped": list(self.collections_not_mapped),
            "records_not_in_relational_by_collection": dict(self.collection_discrepancies),
            "summary": self.summary,
            "report_uri": self.report_uri,
        }


def format_timestamp(timestamp: datetime) -> str:
    """
    Format timestamp for reports

    Args:
        timestamp: DateTime object

    Returns:
        ISO 8601 formatted timestamp string
    """
    return timestamp.isoformat()


def generate_report(
    snapshot: CountSnapshot,
    collection_discrepancies: Mapping[str, Any] | None = None,
    collections_not_mapped: Iterable[str] = (),
) -> ReconciliationReport:
    """
    Generate reconciliation report from a count snapshot

    Args:
        snapshot: Counts per entity kind and source
        collection_discrepancies: Per-collection mapping discrepancies,
            carried through unchanged
        collections_not_mapped: Collections with no relational counterpart

    Returns:
        ReconciliationReport
    """
    entities = {
        kind: EntityDrift(
            entity_kind=kind,
            legacy_count=snapshot.count(kind, LEGACY),
            relational_count=snapshot.count(kind, RELATIONAL),
            index_count=snapshot.count(kind, INDEX),
        )
        for kind in snapshot.entity_kinds
    }

    return ReconciliationReport(
        cutoff=snapshot.cutoff,
        entities=entities,
        collection_discrepancies=collection_discrepancies or {},
        collections_not_mapped=tuple(collections_not_mapped),
    )


def _generate_summary(entities: Mapping[str, EntityDrift]) -> str:
    """
    Generate human-readable summary

    Args:
        entities: Drift per entity kind

    Returns:
        Summary string
    """
    if not entities:
        return "No entity kinds were counted."

    drifted = [kind for kind, drift in entities.items() if not drift.in_sync]
    if not drifted:
        return f"All {len(entities)} entity kinds are fully migrated as of the cutoff."

    details = ", ".join(
        f"{kind} (delta {entities[kind].delta}, index delta {entities[kind].index_delta})"
        for kind in drifted
    )
    return f"Drift found in {len(drifted)} of {len(entities)} entity kinds: {details}."
