"""Trace payload and per-record annotation models.

Pydantic models (not dataclasses) because both are serialized to JSON:
the payload is the POST body sent to the collector, and the annotation
is attached to every output record under the ``_miboTrace`` key.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Key under which delivery results are attached to each output record.
ANNOTATION_KEY = "_miboTrace"

UNKNOWN_WORKFLOW_ID = "unknown"
UNNAMED_WORKFLOW = "Unnamed Workflow"
UNKNOWN_EXECUTION_ID = "unknown"


class FailureStrategy(str, Enum):
    """How a batch reacts to a failed delivery."""

    FAIL_FAST = "fail_fast"
    ANNOTATE_AND_CONTINUE = "annotate_and_continue"


class DeliveryState(str, Enum):
    """Lifecycle of a single batch delivery."""

    BUILT = "built"
    SENDING = "sending"
    DELIVERED = "delivered"
    FAILED = "failed"


def format_timestamp(moment: datetime | None = None) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Naive datetimes are assumed to be UTC. The output uses a ``Z`` suffix,
    e.g. ``2026-01-01T12:00:00.000Z``.
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WorkflowIdentity(BaseModel):
    """Identity of the workflow (and execution) that produced the records.

    Missing or empty values resolve to the documented defaults, so
    downstream code can rely on every field being a non-empty string.
    """

    workflow_id: str = UNKNOWN_WORKFLOW_ID
    workflow_name: str = UNNAMED_WORKFLOW
    execution_id: str = UNKNOWN_EXECUTION_ID

    @field_validator("workflow_id", mode="before")
    @classmethod
    def _default_workflow_id(cls, value: Any) -> Any:
        return value or UNKNOWN_WORKFLOW_ID

    @field_validator("workflow_name", mode="before")
    @classmethod
    def _default_workflow_name(cls, value: Any) -> Any:
        return value or UNNAMED_WORKFLOW

    @field_validator("execution_id", mode="before")
    @classmethod
    def _default_execution_id(cls, value: Any) -> Any:
        return value or UNKNOWN_EXECUTION_ID


class TraceData(BaseModel):
    """The ``data`` block of a trace: the input records and workflow identity."""

    model_config = {"populate_by_name": True}

    input: list[Any]
    workflow_id: str = Field(alias="workflowId")
    workflow_name: str = Field(alias="workflowName")


class ExternalMetadata(BaseModel):
    """Identifiers the collector uses to correlate traces with the host."""

    model_config = {"populate_by_name": True}

    workflow_id: str = Field(alias="workflowId")


class TracePayload(BaseModel):
    """Outbound trace body for ``POST {server_url}/traces``.

    Optional identifiers are omitted from the serialized form entirely
    when unset, rather than being sent as empty strings or nulls.
    """

    model_config = {"populate_by_name": True}

    data: TraceData
    external_metadata: ExternalMetadata = Field(alias="externalMetadata")
    metadata: dict[str, Any]
    platform_id: str | None = Field(default=None, alias="platformId")
    external_id: str | None = Field(default=None, alias="externalId")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape (camelCase keys, unset ids dropped).

        ``data.input`` is placed in the body as-is rather than walked by
        pydantic's serializer, which caps nesting depth. build_trace()
        already reduced it to plain JSON types.
        """
        body = self.model_dump(mode="json", by_alias=True, exclude={"data": {"input"}})
        body["data"] = {"input": list(self.data.input), **body["data"]}
        for key in ("platformId", "externalId"):
            if body.get(key) is None:
                body.pop(key, None)
        return body

    def to_json(self, indent: int | None = None) -> str:
        """Serialize to a JSON string; identical inputs give identical bytes."""
        separators = (",", ":") if indent is None else (",", ": ")
        return json.dumps(
            self.to_dict(), indent=indent, separators=separators, ensure_ascii=False
        )


class TraceAnnotation(BaseModel):
    """Delivery result attached to each output record.

    ``trace_id`` is set on success and ``error`` on failure; the unused
    one is left out of the serialized form.
    """

    model_config = {"populate_by_name": True}

    sent: bool
    trace_id: str | None = Field(default=None, alias="traceId")
    error: str | None = None
    platform_id: str = Field(alias="platformId")
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
