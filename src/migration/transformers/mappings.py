"""
Versioned legacy -> relational mapping tables.

Bump an entity's version whenever one of its rules changes so rows loaded by
different runs can be told apart in logs and metrics.
"""

from migration.entities import (
    ASYNC_OPERATION,
    COLLECTION,
    PROVIDER,
    RELATIONAL_TABLES,
    RULE,
    validate_entity_kind,
)

from .base import EntityMapping, FieldMapping, enabled_state, json_text, parse_timestamp, text_or_json
from .schemas import ASYNC_OPERATION_SCHEMA, COLLECTION_SCHEMA, PROVIDER_SCHEMA, RULE_SCHEMA

TIMESTAMP_FIELDS = (
    FieldMapping("createdAt", "created_at", parse_timestamp),
    FieldMapping("updatedAt", "updated_at", parse_timestamp),
)

COLLECTION_MAPPING = EntityMapping(
    entity_kind=COLLECTION,
    version=1,
    table=RELATIONAL_TABLES[COLLECTION],
    identity_columns=("name", "version"),
    schema=COLLECTION_SCHEMA,
    fields=(
        FieldMapping("name", "name"),
        FieldMapping("version", "version"),
        FieldMapping("process", "process"),
        FieldMapping("url_path", "url_path"),
        FieldMapping("duplicateHandling", "duplicate_handling", default="error"),
        FieldMapping("granuleId", "granule_id_validation_regex"),
        FieldMapping("granuleIdExtraction", "granule_id_extraction_regex"),
        FieldMapping("files", "files", json_text),
        FieldMapping("reportToEms", "report_to_ems", default=True),
        FieldMapping("sampleFileName", "sample_file_name"),
        FieldMapping("ignoreFilesConfigForDiscovery", "ignore_files_config_for_discovery"),
        FieldMapping("meta", "meta", json_text),
        FieldMapping("tags", "tags", json_text),
    ) + TIMESTAMP_FIELDS,
)

PROVIDER_MAPPING = EntityMapping(
    entity_kind=PROVIDER,
    version=1,
    table=RELATIONAL_TABLES[PROVIDER],
    identity_columns=("name",),
    schema=PROVIDER_SCHEMA,
    fields=(
        FieldMapping("id", "name"),
        FieldMapping("protocol", "protocol"),
        FieldMapping("host", "host"),
        FieldMapping("port", "port"),
        FieldMapping("username", "username"),
        FieldMapping("password", "password"),
        FieldMapping("globalConnectionLimit", "global_connection_limit"),
        FieldMapping("maxDownloadTime", "max_download_time"),
        FieldMapping("privateKey", "private_key"),
        FieldMapping("cmKeyId", "cm_key_id"),
        FieldMapping("certificateUri", "certificate_uri"),
        FieldMapping("allowedRedirects", "allowed_redirects", json_text),
    ) + TIMESTAMP_FIELDS,
)

RULE_MAPPING = EntityMapping(
    entity_kind=RULE,
    version=1,
    table=RELATIONAL_TABLES[RULE],
    identity_columns=("name",),
    schema=RULE_SCHEMA,
    fields=(
        FieldMapping("name", "name"),
        FieldMapping("workflow", "workflow"),
        FieldMapping("provider", "provider_name"),
        FieldMapping("collection.name", "collection_name"),
        FieldMapping("collection.version", "collection_version"),
        FieldMapping("rule.type", "type"),
        FieldMapping("rule.value", "value"),
        FieldMapping("rule.arn", "arn"),
        FieldMapping("rule.logEventArn", "log_event_arn"),
        FieldMapping("state", "enabled", enabled_state, default=False),
        FieldMapping("executionNamePrefix", "execution_name_prefix"),
        FieldMapping("queueUrl", "queue_url"),
        FieldMapping("payload", "payload", json_text),
        FieldMapping("meta", "meta", json_text),
        FieldMapping("tags", "tags", json_text),
    ) + TIMESTAMP_FIELDS,
)

ASYNC_OPERATION_MAPPING = EntityMapping(
    entity_kind=ASYNC_OPERATION,
    version=1,
    table=RELATIONAL_TABLES[ASYNC_OPERATION],
    identity_columns=("id",),
    schema=ASYNC_OPERATION_SCHEMA,
    fields=(
        FieldMapping("id", "id"),
        FieldMapping("description", "description"),
        FieldMapping("operationType", "operation_type"),
        FieldMapping("status", "status"),
        FieldMapping("output", "output", text_or_json),
        FieldMapping("taskArn", "task_arn"),
    ) + TIMESTAMP_FIELDS,
)

MAPPINGS = {
    mapping.entity_kind: mapping
    for mapping in (COLLECTION_MAPPING, PROVIDER_MAPPING, RULE_MAPPING, ASYNC_OPERATION_MAPPING)
}


def get_mapping(entity_kind: str) -> EntityMapping:
    """Look up the current mapping table for an entity kind."""
    return MAPPINGS[validate_entity_kind(entity_kind)]
