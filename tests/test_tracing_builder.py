"""Tests for trace payload assembly."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import pytest

from mibo.errors import ConfigurationError
from mibo.models.config import MetadataFields
from mibo.models.trace import WorkflowIdentity, format_timestamp
from mibo.tracing.builder import (
    TraceIdentifiers,
    build_metadata,
    build_trace,
    parse_additional_fields,
)

FIXED = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
STAMP = "2026-01-02T03:04:05.678Z"


def _workflow() -> WorkflowIdentity:
    return WorkflowIdentity(workflow_id="wf-1", workflow_name="Checkout", execution_id="exec-9")


class TestFormatTimestamp:
    def test_utc_millisecond_z_suffix(self):
        assert format_timestamp(FIXED) == STAMP

    def test_naive_datetime_treated_as_utc(self):
        assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05.000Z"


class TestWorkflowIdentity:
    def test_defaults(self):
        wf = WorkflowIdentity()
        assert wf.workflow_id == "unknown"
        assert wf.workflow_name == "Unnamed Workflow"
        assert wf.execution_id == "unknown"

    def test_none_and_empty_resolve_to_defaults(self):
        wf = WorkflowIdentity(workflow_id=None, workflow_name="", execution_id=None)
        assert wf.workflow_id == "unknown"
        assert wf.workflow_name == "Unnamed Workflow"
        assert wf.execution_id == "unknown"


class TestParseAdditionalFields:
    def test_json_object_string(self):
        assert parse_additional_fields('{"team": "backend"}') == {"team": "backend"}

    def test_mapping_passes_through(self):
        assert parse_additional_fields({"team": "backend"}) == {"team": "backend"}

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_empty(self, raw):
        assert parse_additional_fields(raw) == {}

    def test_malformed_json_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="Invalid JSON in Additional Fields"):
            parse_additional_fields('{"team": ')

    def test_non_object_json_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="expected a JSON object"):
            parse_additional_fields("[1, 2]")


class TestBuildMetadata:
    def test_base_only_when_no_operator_metadata(self):
        metadata = build_metadata(_workflow(), None, STAMP)
        assert metadata == {
            "workflowId": "wf-1",
            "workflowName": "Checkout",
            "executionId": "exec-9",
            "timestamp": STAMP,
        }

    def test_operator_fields_merged_in_order(self):
        fields = MetadataFields(
            environment="staging",
            version="2.0.0",
            additional_fields='{"team": "backend", "environment": "override"}',
        )
        metadata = build_metadata(_workflow(), fields, STAMP)
        assert metadata["version"] == "2.0.0"
        assert metadata["team"] == "backend"
        # additional fields win over named fields
        assert metadata["environment"] == "override"

    def test_additional_fields_override_base(self):
        fields = MetadataFields(additional_fields='{"workflowId": "custom"}')
        metadata = build_metadata(_workflow(), fields, STAMP)
        assert metadata["workflowId"] == "custom"

    def test_empty_named_fields_skipped(self):
        fields = MetadataFields(environment="", version="", additional_fields="{}")
        metadata = build_metadata(_workflow(), fields, STAMP)
        assert "environment" not in metadata
        assert "version" not in metadata


class TestBuildTrace:
    def test_payload_shape(self):
        payload = build_trace(
            [{"a": 1}],
            _workflow(),
            None,
            TraceIdentifiers(platform_id="plat-1", external_id="ext-1"),
            FIXED,
        ).to_dict()
        assert payload == {
            "data": {"input": [{"a": 1}], "workflowId": "wf-1", "workflowName": "Checkout"},
            "externalMetadata": {"workflowId": "wf-1"},
            "metadata": {
                "workflowId": "wf-1",
                "workflowName": "Checkout",
                "executionId": "exec-9",
                "timestamp": STAMP,
            },
            "platformId": "plat-1",
            "externalId": "ext-1",
        }

    def test_empty_identifiers_omitted(self):
        """Empty platformId and externalId are left out entirely."""
        payload = build_trace([{"a": 1}], _workflow(), None, TraceIdentifiers("", ""), FIXED).to_dict()
        assert "platformId" not in payload
        assert "externalId" not in payload

    def test_missing_workflow_uses_defaults(self):
        payload = build_trace([], None, None, None, STAMP).to_dict()
        assert payload["data"]["workflowId"] == "unknown"
        assert payload["data"]["workflowName"] == "Unnamed Workflow"
        assert payload["data"]["input"] == []

    def test_deterministic(self):
        """Identical inputs and timestamp give byte-identical JSON."""
        fields = MetadataFields(additional_fields='{"b": 2, "a": 1}')
        args = ([{"x": [1, 2, {"y": None}]}], _workflow(), fields, TraceIdentifiers("p", "e"), FIXED)
        assert build_trace(*args).to_json() == build_trace(*args).to_json()

    def test_to_json_round_trips(self):
        payload = build_trace([{"name": "Zoë"}], _workflow(), None, None, FIXED)
        assert json.loads(payload.to_json()) == payload.to_dict()
        assert "Zoë" in payload.to_json()

    def test_malformed_additional_fields_raises(self):
        fields = MetadataFields(additional_fields="{not json}")
        with pytest.raises(ConfigurationError):
            build_trace([{"a": 1}], _workflow(), fields, None, FIXED)

    def test_external_id_too_long(self):
        with pytest.raises(ConfigurationError, match="at most 255"):
            build_trace([], _workflow(), None, TraceIdentifiers(external_id="x" * 256), FIXED)

    def test_input_list_is_copied(self):
        records = [{"a": 1}]
        payload = build_trace(records, _workflow(), None, None, FIXED)
        records.append({"b": 2})
        assert len(payload.data.input) == 1

    def test_dates_become_iso_strings(self):
        """Non-JSON scalars, such as dates loaded from YAML, are converted."""
        records = [{"created": date(2024, 1, 1), "tags": ("a", "b")}]
        payload = build_trace(records, _workflow(), None, None, FIXED)
        assert payload.to_dict()["data"]["input"] == [{"created": "2024-01-01", "tags": ["a", "b"]}]
        assert records[0]["created"] == date(2024, 1, 1)

    def test_cyclic_record_raises_configuration_error(self):
        record: dict = {"name": "loop"}
        record["self"] = record
        with pytest.raises(ConfigurationError, match="reference cycle"):
            build_trace([record], _workflow(), None, None, FIXED)

    def test_deep_record_serializes(self):
        """to_dict() keeps deeply nested input intact."""
        depth = 600
        value: dict = {"leaf": True}
        for _ in range(depth):
            value = {"child": value}

        body = build_trace([value], _workflow(), None, None, FIXED).to_dict()

        node = body["data"]["input"][0]
        for _ in range(depth):
            node = node["child"]
        assert node == {"leaf": True}
        assert list(body["data"]) == ["input", "workflowId", "workflowName"]
