"""
Legacy record -> target row transformation.

Validation runs against the whole record before any field is mapped, so a
rejected record reports every offending field at once.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any

from jsonschema import Draft7Validator

from migration.models import TargetRow
from utils.errors import ValidationError

from .base import TRANSFORMATION_ERRORS, TRANSFORMATION_TIME, TRANSFORMATIONS_APPLIED, EntityMapping
from .mappings import MAPPINGS, get_mapping

logger = logging.getLogger(__name__)


def _error_fields(error) -> list[str]:
    """Field names a jsonschema error is about, as dotted paths."""
    prefix = ".".join(str(part) for part in error.absolute_path)

    if error.validator == "required" and isinstance(error.instance, Mapping):
        missing = [name for name in error.validator_value if name not in error.instance]
        return [f"{prefix}.{name}" if prefix else name for name in missing]

    return [prefix or "record"]


class RecordTransformer:
    """
    Validates legacy records and maps them onto relational rows.

    Holds one compiled validator per entity kind; otherwise stateless.
    """

    def __init__(self, mappings: Mapping[str, EntityMapping] | None = None):
        self.mappings = dict(mappings or MAPPINGS)
        self._validators = {
            kind: Draft7Validator(mapping.schema) for kind, mapping in self.mappings.items()
        }

    def mapping_for(self, entity_kind: str) -> EntityMapping:
        if entity_kind not in self.mappings:
            return get_mapping(entity_kind)
        return self.mappings[entity_kind]

    def validate(self, record: Any, entity_kind: str) -> None:
        """
        Check a legacy record against its entity schema.

        Raises:
            ValidationError: Listing every offending field
        """
        validator = self._validators.get(entity_kind)
        if validator is None:
            validator = Draft7Validator(self.mapping_for(entity_kind).schema)

        errors = sorted(
            validator.iter_errors(record),
            key=lambda error: [str(part) for part in error.absolute_path],
        )
        if not errors:
            return

        fields = [name for error in errors for name in _error_fields(error)]
        raise ValidationError(
            f"Legacy {entity_kind} record failed schema validation",
            fields=fields,
            details=[error.message for error in errors],
        )

    def transform(self, record: Any, entity_kind: str) -> TargetRow:
        """
        Transform one legacy record.

        Args:
            record: Legacy record as read from the cursor
            entity_kind: Kind the record belongs to

        Returns:
            TargetRow with typed column values

        Raises:
            ValidationError: If the record fails the schema or a value cannot
                be converted
        """
        mapping = self.mapping_for(entity_kind)
        start_time = time.time()

        try:
            self.validate(record, entity_kind)
            columns = {field.target: field.apply(record) for field in mapping.fields}
        except ValidationError:
            TRANSFORMATION_ERRORS.labels(entity_kind=entity_kind, error_type="validation").inc()
            raise

        TRANSFORMATION_TIME.labels(entity_kind=entity_kind).observe(time.time() - start_time)
        TRANSFORMATIONS_APPLIED.labels(
            entity_kind=entity_kind, mapping_version=str(mapping.version)
        ).inc()

        return TargetRow(
            entity_kind=entity_kind,
            identity_key=tuple(columns[column] for column in mapping.identity_columns),
            columns=columns,
            mapping_version=mapping.version,
        )


_default_transformer: RecordTransformer | None = None


def transform_record(record: Any, entity_kind: str) -> TargetRow:
    """Transform a record with a shared default transformer."""
    global _default_transformer
    if _default_transformer is None:
        _default_transformer = RecordTransformer()
    return _default_transformer.transform(record, entity_kind)
