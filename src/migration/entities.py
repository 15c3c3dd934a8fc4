"""
Entity kinds handled by the migration and where each one lives.
"""

COLLECTION = "collection"
PROVIDER = "provider"
RULE = "rule"
ASYNC_OPERATION = "async_operation"

ENTITY_KINDS = (COLLECTION, PROVIDER, RULE, ASYNC_OPERATION)

# Environment variables naming the legacy DynamoDB table per kind
LEGACY_TABLE_ENV_VARS = {
    COLLECTION: "CollectionsTable",
    PROVIDER: "ProvidersTable",
    RULE: "RulesTable",
    ASYNC_OPERATION: "AsyncOperationsTable",
}

RELATIONAL_TABLES = {
    COLLECTION: "collections",
    PROVIDER: "providers",
    RULE: "rules",
    ASYNC_OPERATION: "async_operations",
}

SURROGATE_ID_COLUMN = "cumulus_id"


def validate_entity_kind(entity_kind: str) -> str:
    """
    Check that an entity kind is known

    Raises:
        ValueError: If the kind is not one of ENTITY_KINDS
    """
    if entity_kind not in ENTITY_KINDS:
        raise ValueError(
            f"Unknown entity kind: {entity_kind!r}. "
            f"Expected one of: {', '.join(ENTITY_KINDS)}"
        )
    return entity_kind


def parse_entity_kinds(value: str | None) -> tuple[str, ...]:
    """Parse a comma-separated list of entity kinds; empty means all kinds."""
    if not value:
        return ENTITY_KINDS
    return tuple(validate_entity_kind(kind.strip()) for kind in value.split(",") if kind.strip())


def default_index_names(stack_name: str) -> dict[str, str]:
    """Search-index mirror index per entity kind for a deployment."""
    return {kind: f"{stack_name}-{kind.replace('_', '-')}s" for kind in ENTITY_KINDS}
