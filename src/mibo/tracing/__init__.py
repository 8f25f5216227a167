"""Trace pipeline stages - redaction, payload assembly, and delivery."""

from mibo.tracing.builder import TraceIdentifiers, build_trace, parse_additional_fields
from mibo.tracing.delivery import (
    DeliveryOutcome,
    annotate_records,
    build_request,
    deliver,
    extract_request_id,
    extract_trace_id,
)
from mibo.tracing.redaction import (
    REDACTED_PLACEHOLDER,
    parse_pii_keys,
    redact,
    redact_records,
)

__all__ = [
    "DeliveryOutcome",
    "REDACTED_PLACEHOLDER",
    "TraceIdentifiers",
    "annotate_records",
    "build_request",
    "build_trace",
    "deliver",
    "extract_request_id",
    "extract_trace_id",
    "parse_additional_fields",
    "parse_pii_keys",
    "redact",
    "redact_records",
]
