"""Trace delivery and per-record result mapping.

Sends a built payload through a sender exactly once, then maps the
outcome back onto every input record as a ``_miboTrace`` annotation.
On failure the batch either annotates every record and continues, or
raises a single TraceDeliveryError, depending on the FailureStrategy.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mibo.errors import TraceDeliveryError
from mibo.models.trace import (
    ANNOTATION_KEY,
    DeliveryState,
    FailureStrategy,
    TraceAnnotation,
    TracePayload,
)
from mibo.senders.base import BaseSender, TraceRequest

logger = logging.getLogger(__name__)

TRACES_PATH = "/traces"
DELIVERY_HINT = "Check your API key and server URL in the credentials"

# platformId reported when none was configured.
PLATFORM_FROM_METADATA = "resolved-from-metadata"
PLATFORM_UNKNOWN = "unknown"

_REQUEST_ID_KEYS = ("x-request-id", "X-Request-Id")


@dataclass
class DeliveryOutcome:
    """Result of delivering one batch.

    ``records`` always has one entry per input record, each a copy of
    the input with the annotation attached.
    """

    state: DeliveryState
    records: list[dict[str, Any]]
    annotation: TraceAnnotation
    trace_id: str | None = None
    error: str | None = None
    state_history: list[DeliveryState] = field(default_factory=list)

    @property
    def sent(self) -> bool:
        return self.state is DeliveryState.DELIVERED


def extract_request_id(records: list[Any]) -> str | None:
    """Find a request id to propagate from the first record.

    Looks in the record's ``headers`` mapping first, then at the top
    level of the record, accepting either header casing.
    """
    if not records or not isinstance(records[0], Mapping):
        return None
    first = records[0]
    headers = first.get("headers")
    sources = [headers] if isinstance(headers, Mapping) else []
    sources.append(first)
    for source in sources:
        for key in _REQUEST_ID_KEYS:
            value = source.get(key)
            if value:
                return str(value)
    return None


def build_request(
    payload: TracePayload,
    server_url: str,
    api_key: str,
    timeout_ms: int,
    request_id: str | None = None,
) -> TraceRequest:
    """Build the POST request that carries the trace to the collector."""
    headers = {
        "X-API-Key": api_key,
        "Content-Type": "application/json",
    }
    if request_id:
        headers["X-Request-Id"] = request_id
    return TraceRequest(
        method="POST",
        url=f"{server_url.rstrip('/')}{TRACES_PATH}",
        headers=headers,
        body=payload.to_dict(),
        timeout_ms=timeout_ms,
    )


def extract_trace_id(response: Mapping[str, Any] | None) -> str:
    """Pull the trace id from a collector response.

    Prefers ``traceId``, falls back to ``id``, then to ``"unknown"``.
    """
    if not response:
        return "unknown"
    trace_id = response.get("traceId") or response.get("id")
    return str(trace_id) if trace_id else "unknown"


def annotate_records(
    records: list[Mapping[str, Any]],
    annotation: TraceAnnotation,
) -> list[dict[str, Any]]:
    """Copy each record and attach the annotation under ``_miboTrace``.

    Input records are not modified; every output gets its own dict.
    """
    return [{**record, ANNOTATION_KEY: annotation.to_dict()} for record in records]


def deliver(
    payload: TracePayload,
    records: list[Mapping[str, Any]],
    sender: BaseSender,
    request: TraceRequest,
    strategy: FailureStrategy,
    platform_id: str,
    timestamp: str,
) -> DeliveryOutcome:
    """Send the payload once and map the outcome onto the records.

    Args:
        payload: The built trace (only used for logging; the request
            already carries its serialized body).
        records: Original, unredacted input records.
        sender: Sender that performs the request.
        request: Prepared POST request.
        strategy: What to do if the send fails.
        platform_id: Configured platform id ("" when unset).
        timestamp: Batch timestamp recorded in each annotation.

    Returns:
        DeliveryOutcome with one annotated record per input record.

    Raises:
        TraceDeliveryError: If the send fails and strategy is FAIL_FAST.
    """
    history = [DeliveryState.BUILT, DeliveryState.SENDING]
    logger.debug(
        "Sending trace with %d record(s) to %s", len(payload.data.input), request.url
    )
    try:
        response = sender.send(request)
    except Exception as exc:
        message = str(exc) or type(exc).__name__
        history.append(DeliveryState.FAILED)
        if strategy is FailureStrategy.FAIL_FAST:
            logger.error("Trace delivery failed: %s", message)
            raise TraceDeliveryError(
                f"Failed to send trace to Mibo Testing: {message}",
                hint=DELIVERY_HINT,
            ) from exc
        logger.warning(
            "Trace delivery failed, annotating %d record(s): %s", len(records), message
        )
        annotation = TraceAnnotation(
            sent=False,
            error=message,
            platform_id=platform_id or PLATFORM_UNKNOWN,
            timestamp=timestamp,
        )
        return DeliveryOutcome(
            state=DeliveryState.FAILED,
            records=annotate_records(records, annotation),
            annotation=annotation,
            error=message,
            state_history=history,
        )

    trace_id = extract_trace_id(response)
    history.append(DeliveryState.DELIVERED)
    logger.info("Trace delivered (traceId=%s, records=%d)", trace_id, len(records))
    annotation = TraceAnnotation(
        sent=True,
        trace_id=trace_id,
        platform_id=platform_id or PLATFORM_FROM_METADATA,
        timestamp=timestamp,
    )
    return DeliveryOutcome(
        state=DeliveryState.DELIVERED,
        records=annotate_records(records, annotation),
        annotation=annotation,
        trace_id=trace_id,
        state_history=history,
    )
