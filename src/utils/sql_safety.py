"""
SQL safety utilities for building relational store queries.

Table and column names cannot be bound as query parameters, so every
identifier interpolated into SQL goes through these validators first.
"""

import re

VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(identifier: str) -> None:
    """
    Validate a SQL identifier (table or column name)

    Raises:
        ValueError: If the identifier is empty or contains invalid characters
    """
    if not identifier:
        raise ValueError("SQL identifier cannot be empty")

    if not VALID_IDENTIFIER.match(identifier):
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            "Only ASCII letters, digits, and underscores are allowed, "
            "and must start with a letter or underscore."
        )


def quote_identifier(identifier: str) -> str:
    """Validate and double-quote a PostgreSQL identifier."""
    validate_identifier(identifier)
    return f'"{identifier}"'


def quote_table(table: str) -> str:
    """
    Validate and quote a table name, optionally schema-qualified

    Args:
        table: "collections" or "public.collections"

    Returns:
        Quoted identifier such as "public"."collections"
    """
    if not table:
        raise ValueError("Table name cannot be empty")
    return ".".join(quote_identifier(part) for part in table.split(".", 1))
