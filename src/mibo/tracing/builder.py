"""Trace payload assembly.

Combines (already redacted) input records, workflow identity, operator
metadata and identifiers into a single TracePayload. Redaction is the
caller's decision and happens before this step.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from mibo.errors import ConfigurationError, CyclicValueError
from mibo.models.trace import (
    ExternalMetadata,
    TraceData,
    TracePayload,
    WorkflowIdentity,
    format_timestamp,
)
from mibo.values import to_jsonable

if TYPE_CHECKING:
    from mibo.models.config import MetadataFields

logger = logging.getLogger(__name__)

MAX_EXTERNAL_ID_LENGTH = 255


@dataclass(frozen=True)
class TraceIdentifiers:
    """Optional identifiers attached to the trace; empty means omitted."""

    platform_id: str = ""
    external_id: str = ""


def parse_additional_fields(raw: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode the additional metadata fields block.

    Accepts a JSON object encoded as a string, or an already-decoded
    mapping. None and blank strings decode to an empty dict.

    Raises:
        ConfigurationError: If the string is not valid JSON or does not
            decode to a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Invalid JSON in Additional Fields: {exc.msg} (line {exc.lineno}, "
            f"column {exc.colno}). Please ensure the Additional Fields contains valid JSON."
        ) from exc
    if not isinstance(decoded, dict):
        raise ConfigurationError(
            "Invalid JSON in Additional Fields: expected a JSON object, "
            f"got {type(decoded).__name__}."
        )
    return decoded


def build_metadata(
    workflow: WorkflowIdentity,
    operator_metadata: "MetadataFields | None",
    timestamp: str,
) -> dict[str, Any]:
    """Merge base identity fields with operator metadata.

    Order: workflow identity and timestamp, then environment/version
    (when non-empty), then additional fields. Later keys win.
    """
    metadata: dict[str, Any] = {
        "workflowId": workflow.workflow_id,
        "workflowName": workflow.workflow_name,
        "executionId": workflow.execution_id,
        "timestamp": timestamp,
    }
    if operator_metadata is None:
        return metadata

    if operator_metadata.environment:
        metadata["environment"] = operator_metadata.environment
    if operator_metadata.version:
        metadata["version"] = operator_metadata.version
    metadata.update(parse_additional_fields(operator_metadata.additional_fields))
    return metadata


def build_trace(
    input_records: list[Any],
    workflow: WorkflowIdentity | None,
    operator_metadata: "MetadataFields | None",
    identifiers: TraceIdentifiers | None,
    timestamp: datetime | str,
) -> TracePayload:
    """Build the outbound trace payload for one batch.

    The result depends only on the arguments, so identical inputs and
    timestamp serialize to identical bytes.

    Records are copied into plain JSON types (dates become ISO strings).

    Args:
        input_records: Ordered records, redacted if the caller chose to.
        workflow: Workflow identity; None resolves to the defaults.
        operator_metadata: Metadata fields to merge, or None to send only
            the base identity metadata.
        identifiers: Platform and external ids; empty ones are omitted.
        timestamp: Batch timestamp as a datetime or preformatted string.

    Returns:
        The assembled TracePayload.

    Raises:
        ConfigurationError: If additional metadata fields are malformed
            or the external id is too long, or a record contains a
            reference cycle.
    """
    workflow = workflow or WorkflowIdentity()
    identifiers = identifiers or TraceIdentifiers()
    stamp = timestamp if isinstance(timestamp, str) else format_timestamp(timestamp)

    if len(identifiers.external_id) > MAX_EXTERNAL_ID_LENGTH:
        raise ConfigurationError(
            f"External ID must be at most {MAX_EXTERNAL_ID_LENGTH} characters "
            f"(got {len(identifiers.external_id)})."
        )

    metadata = build_metadata(workflow, operator_metadata, stamp)
    try:
        input_data = to_jsonable(list(input_records))
    except CyclicValueError as exc:
        raise ConfigurationError(
            "Input records contain a reference cycle and cannot be sent as JSON."
        ) from exc

    payload = TracePayload(
        data=TraceData(
            input=input_data,
            workflow_id=workflow.workflow_id,
            workflow_name=workflow.workflow_name,
        ),
        external_metadata=ExternalMetadata(workflow_id=workflow.workflow_id),
        metadata=metadata,
        platform_id=identifiers.platform_id or None,
        external_id=identifiers.external_id or None,
    )
    logger.debug(
        "Built trace for workflow %s with %d record(s)",
        workflow.workflow_id,
        len(payload.data.input),
    )
    return payload
