"""End-to-end tests for TracePipeline with a stub sender."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from mibo.errors import ConfigurationError, TraceDeliveryError, TransportError
from mibo.models.config import MetadataFields, ProjectConfig
from mibo.models.trace import WorkflowIdentity
from mibo.pipeline import TracePipeline
from mibo.senders.base import BaseSender, TraceRequest
from mibo.senders.http_sender import HttpSender

FIXED = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
STAMP = "2026-03-01T12:00:00.000Z"


class StubSender(BaseSender):
    """Sender double capturing requests."""

    def __init__(self, response: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.response = response or {}
        self.error = error
        self.requests: list[TraceRequest] = []

    def send(self, request: TraceRequest) -> dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def _config(**overrides: Any) -> ProjectConfig:
    data: dict[str, Any] = {"credentials": {"api_key": "secret-key"}}
    data.update(overrides)
    return ProjectConfig.model_validate(data)


def _pipeline(sender: BaseSender, **overrides: Any) -> TracePipeline:
    return TracePipeline(_config(**overrides), sender=sender, clock=lambda: FIXED)


class TestScenarios:
    """Behaviour of a full batch run."""

    def test_flat_record_redacted_in_payload(self):
        """Scenario A: top-level email is redacted in the outbound payload."""
        sender = StubSender({"traceId": "t1"})
        pipeline = _pipeline(sender, clean_pii=True, pii_keys="email")

        pipeline.run([{"email": "a@b.com", "name": "X"}])

        body = sender.requests[0].body
        assert body["data"]["input"] == [{"email": "[REDACTED]", "name": "X"}]

    def test_nested_record_redacted_in_payload(self):
        """Scenario B: nested email is redacted in the outbound payload."""
        sender = StubSender({"traceId": "t1"})
        pipeline = _pipeline(sender, clean_pii=True, pii_keys="email")

        pipeline.run([{"user": {"email": "a@b.com"}}])

        assert sender.requests[0].body["data"]["input"] == [{"user": {"email": "[REDACTED]"}}]

    def test_success_annotates_every_record(self):
        """Scenario C: a traceId response marks every record as sent."""
        sender = StubSender({"traceId": "t1"})
        records = [{"n": i} for i in range(4)]

        output = _pipeline(sender).run(records)

        assert len(output) == len(records)
        for record in output:
            assert record["_miboTrace"]["sent"] is True
            assert record["_miboTrace"]["traceId"] == "t1"
            assert record["_miboTrace"]["timestamp"] == STAMP

    def test_failure_with_continue_on_fail(self):
        """Scenario D: sender error with continue-on-fail annotates instead of raising."""
        sender = StubSender(error=TransportError("timed out"))
        records = [{"n": 1}, {"n": 2}]

        output = _pipeline(sender, continue_on_fail=True).run(records)

        assert len(output) == 2
        for record in output:
            assert record["_miboTrace"]["sent"] is False
            assert record["_miboTrace"]["error"] == "timed out"

    def test_failure_without_continue_on_fail(self):
        """Scenario E: sender error in fail-fast mode raises a single error."""
        sender = StubSender(error=TransportError("timed out"))

        with pytest.raises(TraceDeliveryError, match="timed out"):
            _pipeline(sender).run([{"n": 1}, {"n": 2}])

    def test_empty_identifiers_not_in_payload(self):
        """Scenario F: empty platformId and externalId are not sent."""
        sender = StubSender({"traceId": "t1"})

        _pipeline(sender, platform_id="", external_id="").run([{"n": 1}])

        body = sender.requests[0].body
        assert "platformId" not in body
        assert "externalId" not in body


class TestPipelineBehaviour:
    def test_original_records_returned_unredacted(self):
        """Output records carry the original values; only the payload is redacted."""
        sender = StubSender({"traceId": "t1"})
        output = _pipeline(sender, clean_pii=True, pii_keys="email").run([{"email": "a@b.com"}])
        assert output[0]["email"] == "a@b.com"

    def test_pii_keys_ignored_when_clean_pii_disabled(self):
        sender = StubSender({"traceId": "t1"})
        _pipeline(sender, clean_pii=False, pii_keys="email").run([{"email": "a@b.com"}])
        assert sender.requests[0].body["data"]["input"] == [{"email": "a@b.com"}]

    def test_payload_built_once_per_batch(self):
        """One request regardless of record count, carrying all records."""
        sender = StubSender({"traceId": "t1"})
        _pipeline(sender).run([{"n": i} for i in range(10)])
        assert len(sender.requests) == 1
        assert len(sender.requests[0].body["data"]["input"]) == 10

    def test_request_target_headers_and_timeout(self):
        sender = StubSender({"id": "i1"})
        pipeline = _pipeline(
            sender,
            options={"server_url": "https://custom.example.com/", "timeout": 5},
        )
        pipeline.run([{"headers": {"x-request-id": "req-1"}}])

        request = sender.requests[0]
        assert request.method == "POST"
        assert request.url == "https://custom.example.com/traces"
        assert request.headers["X-API-Key"] == "secret-key"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Request-Id"] == "req-1"
        assert request.timeout_ms == 5_000

    def test_default_server_url_from_credentials(self):
        sender = StubSender()
        pipeline = TracePipeline(
            ProjectConfig.model_validate(
                {"credentials": {"api_key": "k", "server_url": "https://self-hosted.local"}}
            ),
            sender=sender,
        )
        pipeline.run([{}])
        assert sender.requests[0].url == "https://self-hosted.local/traces"

    def test_workflow_identity_and_metadata(self):
        sender = StubSender()
        pipeline = _pipeline(
            sender,
            include_metadata=True,
            metadata={"environment": "staging", "additional_fields": '{"team": "core"}'},
        )
        pipeline.run([{}], WorkflowIdentity(workflow_id="wf-9", workflow_name="Signup"))

        body = sender.requests[0].body
        assert body["data"]["workflowId"] == "wf-9"
        assert body["data"]["workflowName"] == "Signup"
        assert body["metadata"] == {
            "workflowId": "wf-9",
            "workflowName": "Signup",
            "executionId": "unknown",
            "timestamp": STAMP,
            "environment": "staging",
            "version": "1.0.0",
            "team": "core",
        }

    def test_metadata_excluded_when_not_included(self):
        sender = StubSender()
        _pipeline(
            sender,
            include_metadata=False,
            metadata=MetadataFields(environment="staging").model_dump(),
        ).run([{}])
        assert "environment" not in sender.requests[0].body["metadata"]

    def test_malformed_metadata_raises_before_send(self):
        """Invalid additional fields raise ConfigurationError and the sender is never called."""
        sender = MagicMock(spec=BaseSender)
        pipeline = _pipeline(
            sender,
            continue_on_fail=True,
            include_metadata=True,
            metadata={"additional_fields": "{oops"},
        )

        with pytest.raises(ConfigurationError):
            pipeline.run([{"n": 1}])

        sender.send.assert_not_called()

    def test_missing_api_key_raises_before_send(self):
        sender = MagicMock(spec=BaseSender)
        pipeline = TracePipeline(ProjectConfig(), sender=sender)

        with pytest.raises(ConfigurationError, match="API key"):
            pipeline.run([{"n": 1}])

        sender.send.assert_not_called()

    def test_non_object_record_rejected(self):
        sender = MagicMock(spec=BaseSender)
        with pytest.raises(ConfigurationError, match="record 1"):
            _pipeline(sender).run([{"ok": True}, ["not", "an", "object"]])
        sender.send.assert_not_called()

    def test_empty_batch(self):
        sender = StubSender({"traceId": "t1"})
        assert _pipeline(sender).run([]) == []
        assert sender.requests[0].body["data"]["input"] == []

    def test_preview_does_not_send(self):
        sender = MagicMock(spec=BaseSender)
        payload = _pipeline(sender, clean_pii=True, pii_keys="password").preview(
            [{"password": "hunter2"}]
        )
        assert payload.to_dict()["data"]["input"] == [{"password": "[REDACTED]"}]
        sender.send.assert_not_called()

    def test_preview_deterministic(self):
        pipeline = _pipeline(StubSender(), include_metadata=True)
        records = [{"a": [1, {"b": None}]}]
        assert pipeline.preview(records).to_json() == pipeline.preview(records).to_json()

    def test_sender_resolved_from_config(self):
        pipeline = TracePipeline(_config())
        assert isinstance(pipeline.sender, HttpSender)

    def test_unknown_sender_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="Unknown sender"):
            TracePipeline(_config(sender="nope"))

    def test_pipeline_closes_sender_it_created(self):
        sender = MagicMock(spec=BaseSender)
        with patch("mibo.pipeline.get_sender", return_value=sender):
            with TracePipeline(_config()) as pipeline:
                assert pipeline.sender is sender
        sender.close.assert_called_once_with()

    def test_pipeline_leaves_injected_sender_open(self):
        sender = MagicMock(spec=BaseSender)
        with _pipeline(sender):
            pass
        sender.close.assert_not_called()


def _nested(depth: int) -> dict[str, Any]:
    value: dict[str, Any] = {"email": "leaf@x.com"}
    for _ in range(depth):
        value = {"child": value}
    return value


def _leaf(value: dict[str, Any], depth: int) -> dict[str, Any]:
    for _ in range(depth):
        value = value["child"]
    return value


class TestDeepRecords:
    """Deeply nested but acyclic records go through a full batch run."""

    @pytest.mark.parametrize("depth", [300, 900, 2500])
    def test_deep_record_delivered(self, depth):
        sender = StubSender({"traceId": "deep"})

        output = _pipeline(sender, clean_pii=True, pii_keys="email").run([_nested(depth)])

        assert len(output) == 1
        assert output[0]["_miboTrace"]["sent"] is True
        sent = sender.requests[0].body["data"]["input"][0]
        assert _leaf(sent, depth) == {"email": "[REDACTED]"}

    def test_deep_record_without_redaction(self):
        sender = StubSender({"traceId": "deep"})

        _pipeline(sender).run([_nested(400)])

        sent = sender.requests[0].body["data"]["input"][0]
        assert _leaf(sent, 400) == {"email": "leaf@x.com"}

    def test_cyclic_record_raises_before_send(self):
        record: dict[str, Any] = {"name": "loop"}
        record["self"] = record
        sender = StubSender({"traceId": "t1"})

        with pytest.raises(ConfigurationError, match="reference cycle"):
            _pipeline(sender, continue_on_fail=True).run([record])
        assert sender.requests == []
