"""
Record transformation from legacy documents to relational rows.

Usage:
    from migration.transformers import RecordTransformer

    row = RecordTransformer().transform(legacy_record, "collection")
"""

from .base import EntityMapping, FieldMapping, json_text, parse_timestamp
from .mappings import MAPPINGS, get_mapping
from .record import RecordTransformer, transform_record

__all__ = [
    "RecordTransformer",
    "transform_record",
    "EntityMapping",
    "FieldMapping",
    "MAPPINGS",
    "get_mapping",
    "json_text",
    "parse_timestamp",
]
