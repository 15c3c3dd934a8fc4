"""
Unit tests for legacy record transformation

Tests verify:
- Schema validation before mapping, listing every offending field
- Field mapping per entity kind (renames, nested paths, defaults)
- JSON text encoding of list/object fields
- Timestamp parsing into UTC datetimes
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from fakes import (
    CREATED_AT_MS,
    UPDATED_AT_MS,
    make_async_operation,
    make_collection,
    make_provider,
    make_rule,
    to_datetime,
)
from migration.transformers import RecordTransformer, get_mapping, json_text, parse_timestamp
from migration.transformers.base import FieldMapping, get_path, MISSING
from utils.errors import ValidationError


@pytest.fixture
def transformer():
    return RecordTransformer()


class TestCollectionMapping:
    """Test collection records map onto the collections table"""

    def test_identity_key_is_name_and_version(self, transformer):
        row = transformer.transform(make_collection(), "collection")

        assert row.entity_kind == "collection"
        assert row.identity_key == ("MOD09GQ", "006")
        assert row.mapping_version == get_mapping("collection").version

    def test_file_rules_and_tags_decode_back_exactly(self, transformer):
        record = make_collection()

        row = transformer.transform(record, "collection")

        assert json.loads(row["files"]) == record["files"]
        assert len(json.loads(row["files"])) == 3
        assert json.loads(row["tags"]) == ["modis", "surface-reflectance"]

    def test_timestamps_come_from_legacy_record(self, transformer):
        row = transformer.transform(make_collection(), "collection")

        assert row["created_at"] == to_datetime(CREATED_AT_MS)
        assert row["updated_at"] == to_datetime(UPDATED_AT_MS)
        assert row["created_at"].tzinfo is not None

    def test_renamed_granule_fields(self, transformer):
        record = make_collection()

        row = transformer.transform(record, "collection")

        assert row["granule_id_validation_regex"] == record["granuleId"]
        assert row["granule_id_extraction_regex"] == record["granuleIdExtraction"]
        assert row["sample_file_name"] == record["sampleFileName"]

    def test_schema_defaults_applied_when_absent(self, transformer):
        row = transformer.transform(make_collection(), "collection")

        assert row["duplicate_handling"] == "error"
        assert row["report_to_ems"] is True

    def test_explicit_false_flag_is_kept(self, transformer):
        row = transformer.transform(make_collection(reportToEms=False), "collection")

        assert row["report_to_ems"] is False

    def test_absent_optional_fields_map_to_none(self, transformer):
        row = transformer.transform(make_collection(), "collection")

        assert row["meta"] is None
        assert row["url_path"] is None
        assert row["ignore_files_config_for_discovery"] is None

    def test_null_optional_field_maps_to_none(self, transformer):
        row = transformer.transform(make_collection(meta=None, tags=None), "collection")

        assert row["meta"] is None
        assert row["tags"] is None

    def test_empty_list_is_encoded_not_dropped(self, transformer):
        row = transformer.transform(make_collection(tags=[]), "collection")

        assert row["tags"] == "[]"

    def test_meta_object_encoded_as_json(self, transformer):
        meta = {"provider_path": "/data", "granuleRecoveryWorkflow": "DrRecovery"}

        row = transformer.transform(make_collection(meta=meta), "collection")

        assert json.loads(row["meta"]) == meta

    def test_columns_are_read_only(self, transformer):
        row = transformer.transform(make_collection(), "collection")

        with pytest.raises(TypeError):
            row.columns["name"] = "other"

    def test_same_input_same_output(self, transformer):
        record = make_collection()

        assert transformer.transform(record, "collection") == transformer.transform(record, "collection")


class TestValidation:
    """Test records failing the schema are rejected before mapping"""

    def test_missing_required_fields_are_all_listed(self, transformer):
        record = make_collection()
        del record["process"]
        del record["files"]

        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(record, "collection")

        assert exc_info.value.fields == ["files", "process"]
        assert "files" in str(exc_info.value)

    def test_wrong_type_is_reported(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_collection(name=5), "collection")

        assert exc_info.value.fields == ["name"]
        assert exc_info.value.details

    def test_nested_file_rule_errors_use_dotted_path(self, transformer):
        record = make_collection()
        del record["files"][0]["regex"]

        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(record, "collection")

        assert exc_info.value.fields == ["files.0.regex"]

    def test_type_and_missing_errors_reported_together(self, transformer):
        record = make_collection(version=6)
        del record["granuleId"]

        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(record, "collection")

        assert exc_info.value.fields == ["granuleId", "version"]

    def test_malformed_timestamp_string(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_collection(createdAt="yesterday"), "collection")

        assert exc_info.value.fields == ["createdAt"]

    def test_boolean_timestamp_rejected(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_collection(updatedAt=True), "collection")

        assert exc_info.value.fields == ["updatedAt"]

    def test_non_mapping_record(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(["not", "a", "record"], "collection")

        assert exc_info.value.fields == ["record"]

    def test_invalid_duplicate_handling_value(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_collection(duplicateHandling="overwrite"), "collection")

        assert exc_info.value.fields == ["duplicateHandling"]

    def test_unknown_entity_kind(self, transformer):
        with pytest.raises(ValueError, match="Unknown entity kind"):
            transformer.transform(make_collection(), "granule")


class TestOtherEntityKinds:
    """Test provider, rule and async operation mappings"""

    def test_provider_id_becomes_name(self, transformer):
        row = transformer.transform(make_provider(port=443), "provider")

        assert row.identity_key == ("s3_provider",)
        assert row["name"] == "s3_provider"
        assert row["port"] == 443
        assert row["global_connection_limit"] == 10
        assert row["allowed_redirects"] is None

    def test_provider_unknown_protocol_rejected(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_provider(protocol="gopher"), "provider")

        assert exc_info.value.fields == ["protocol"]

    def test_rule_nested_fields_flattened(self, transformer):
        row = transformer.transform(
            make_rule(rule={"type": "sqs", "value": "https://sqs.example/queue"}),
            "rule",
        )

        assert row.identity_key == ("mod09gq_onetime",)
        assert row["type"] == "sqs"
        assert row["value"] == "https://sqs.example/queue"
        assert row["collection_name"] == "MOD09GQ"
        assert row["collection_version"] == "006"
        assert row["provider_name"] == "s3_provider"
        assert row["enabled"] is True

    def test_disabled_rule(self, transformer):
        row = transformer.transform(make_rule(state="DISABLED"), "rule")

        assert row["enabled"] is False

    def test_rule_without_collection(self, transformer):
        record = make_rule()
        del record["collection"]

        row = transformer.transform(record, "rule")

        assert row["collection_name"] is None
        assert row["collection_version"] is None

    def test_rule_missing_nested_type(self, transformer):
        with pytest.raises(ValidationError) as exc_info:
            transformer.transform(make_rule(rule={"value": "x"}), "rule")

        assert exc_info.value.fields == ["rule.type"]

    def test_async_operation_string_output_kept(self, transformer):
        row = transformer.transform(make_async_operation(), "async_operation")

        assert row.identity_key == ("0eb8e809-8790-5409-1239-bcd9e8d28b8e",)
        assert row["output"] == '{"deleted": 3}'
        assert row["operation_type"] == "Bulk Granule Delete"

    def test_async_operation_object_output_encoded(self, transformer):
        row = transformer.transform(make_async_operation(output={"deleted": 3}), "async_operation")

        assert json.loads(row["output"]) == {"deleted": 3}


class TestParseTimestamp:
    """Test timestamp conversion"""

    def test_epoch_millis_integer(self):
        assert parse_timestamp(0, "createdAt") == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(1500, "createdAt") == datetime(
            1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc
        )

    def test_epoch_millis_float(self):
        result = parse_timestamp(1500.0, "createdAt")

        assert result == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)

    def test_numeric_string(self):
        assert parse_timestamp(str(CREATED_AT_MS), "createdAt") == to_datetime(CREATED_AT_MS)

    def test_iso_string_with_offset_converted_to_utc(self):
        result = parse_timestamp("2020-09-13T14:26:40+02:00", "createdAt")

        assert result == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)
        assert result.utcoffset() == timedelta(0)

    def test_iso_string_with_z_suffix(self):
        result = parse_timestamp("2020-09-13T12:26:40Z", "createdAt")

        assert result == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)

    def test_naive_iso_string_read_as_utc(self):
        result = parse_timestamp("2020-09-13T12:26:40", "createdAt")

        assert result == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)

    def test_out_of_range_value(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_timestamp(10**20, "updatedAt")

        assert exc_info.value.fields == ["updatedAt"]

    def test_unsupported_type(self):
        with pytest.raises(ValidationError, match="unsupported type"):
            parse_timestamp([1, 2], "createdAt")


class TestMappingPrimitives:
    """Test field mapping helpers"""

    def test_get_path_nested(self):
        assert get_path({"rule": {"type": "sqs"}}, "rule.type") == "sqs"

    def test_get_path_missing_step(self):
        assert get_path({"rule": "flat"}, "rule.type") is MISSING
        assert get_path({}, "rule.type") is MISSING

    def test_field_mapping_default_for_missing(self):
        mapping = FieldMapping("duplicateHandling", "duplicate_handling", default="error")

        assert mapping.apply({}) == "error"
        assert mapping.apply({"duplicateHandling": None}) == "error"
        assert mapping.apply({"duplicateHandling": "skip"}) == "skip"

    def test_json_text_rejects_unserializable(self):
        with pytest.raises(ValidationError) as exc_info:
            json_text({"when": object()}, "meta")

        assert exc_info.value.fields == ["meta"]

    def test_source_identity_of_invalid_record(self):
        mapping = get_mapping("collection")

        assert mapping.source_identity({"name": "MOD09GQ"}) == ("MOD09GQ", None)
        assert mapping.source_identity("garbage") == (None, None)
        assert mapping.describe_identity(("MOD09GQ", "006")) == "name=MOD09GQ, version=006"
