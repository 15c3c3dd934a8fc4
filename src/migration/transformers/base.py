"""
Field mapping primitives and value codecs.

A mapping table is a list of FieldMapping entries. Each entry names a legacy
attribute (dotted for nested attributes), the relational column it lands in,
the codec that converts the value and the default used when the attribute is
absent. Codecs raise ValidationError naming the legacy attribute they were
given.
"""

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from prometheus_client import Counter, Histogram

from utils.errors import ValidationError
from utils.metrics.registry import get_or_create_metric

logger = logging.getLogger(__name__)


# Metrics
TRANSFORMATIONS_APPLIED = get_or_create_metric(
    lambda: Counter(
        "transformations_applied_total",
        "Legacy records transformed into relational rows",
        ["entity_kind", "mapping_version"],
    ),
    "transformations_applied",
)

TRANSFORMATION_TIME = get_or_create_metric(
    lambda: Histogram(
        "transformation_seconds",
        "Time to validate and map one legacy record",
        ["entity_kind"],
        buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1],
    ),
    "transformation_seconds",
)

TRANSFORMATION_ERRORS = get_or_create_metric(
    lambda: Counter(
        "transformation_errors_total",
        "Legacy records rejected during transformation",
        ["entity_kind", "error_type"],
    ),
    "transformation_errors",
)

Codec = Callable[[Any, str], Any]

MISSING = object()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def passthrough(value: Any, source: str) -> Any:
    return value


def json_text(value: Any, source: str) -> str:
    """
    Serialize a list or object attribute into JSON text.

    Empty containers are kept ("[]" / "{}"), so they never collapse to NULL.
    """
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Attribute {source} is not JSON serializable: {e}", fields=[source]
        ) from e


def text_or_json(value: Any, source: str) -> str:
    """Keep strings as-is; serialize anything else into JSON text."""
    if isinstance(value, str):
        return value
    return json_text(value, source)


def enabled_state(value: Any, source: str) -> bool:
    return value == "ENABLED"


def _from_epoch_millis(millis: int | float, source: str) -> datetime:
    try:
        if isinstance(millis, int):
            return EPOCH + timedelta(milliseconds=millis)
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise ValidationError(
            f"Timestamp {source} is out of range: {millis!r}", fields=[source]
        ) from e


def parse_timestamp(value: Any, source: str) -> datetime:
    """
    Convert a legacy timestamp into a timezone-aware UTC datetime.

    Accepts epoch milliseconds (numbers or digit strings) and ISO-8601
    strings. Naive ISO strings are read as UTC.

    Args:
        value: Legacy attribute value
        source: Legacy attribute name, reported on failure

    Returns:
        Aware datetime in UTC

    Raises:
        ValidationError: If the value is not a recognisable timestamp
    """
    if isinstance(value, bool):
        raise ValidationError(f"Timestamp {source} must not be a boolean", fields=[source])

    if isinstance(value, (int, float)):
        return _from_epoch_millis(value, source)

    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return _from_epoch_millis(int(text), source)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(
                f"Timestamp {source} is malformed: {value!r}", fields=[source]
            ) from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    raise ValidationError(
        f"Timestamp {source} has unsupported type {type(value).__name__}",
        fields=[source],
    )


def get_path(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted attribute path; returns MISSING when any step is absent."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


@dataclass(frozen=True)
class FieldMapping:
    """
    One legacy attribute -> relational column rule.

    Attributes:
        source: Legacy attribute, dotted for nested attributes
        target: Relational column name
        codec: Converter applied to present, non-null values
        default: Column value when the attribute is absent or null
    """

    source: str
    target: str
    codec: Codec = passthrough
    default: Any = None

    def apply(self, record: Mapping[str, Any]) -> Any:
        value = get_path(record, self.source)
        if value is MISSING or value is None:
            return self.default
        return self.codec(value, self.source)


@dataclass(frozen=True)
class EntityMapping:
    """
    Versioned mapping table for one entity kind.

    Attributes:
        entity_kind: Kind of entity
        version: Mapping table version, bumped whenever a rule changes
        table: Relational table name
        identity_columns: Columns forming the natural identity key
        fields: Field mapping rules
        schema: JSON schema every legacy record must satisfy
    """

    entity_kind: str
    version: int
    table: str
    identity_columns: tuple[str, ...]
    fields: tuple[FieldMapping, ...]
    schema: Mapping[str, Any] = field(default_factory=dict)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(mapping.target for mapping in self.fields)

    def source_for(self, column: str) -> str:
        for mapping in self.fields:
            if mapping.target == column:
                return mapping.source
        raise KeyError(column)

    def source_identity(self, record: Any) -> tuple:
        """
        Raw identity values of a legacy record, before validation.

        Used to name a record in logs even when it fails to transform.
        """
        if not isinstance(record, Mapping):
            return tuple(None for _ in self.identity_columns)
        values = []
        for column in self.identity_columns:
            value = get_path(record, self.source_for(column))
            values.append(None if value is MISSING else value)
        return tuple(values)

    def describe_identity(self, identity_key: tuple) -> str:
        return ", ".join(
            f"{column}={value}" for column, value in zip(self.identity_columns, identity_key)
        )
