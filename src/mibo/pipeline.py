"""TracePipeline orchestrating one batch from records to annotations.

Wires configuration, optional PII redaction, payload assembly and
delivery together: records -> redact -> build_trace -> sender ->
per-record annotations. Each run() call is independent; nothing is
shared between batches except the sender.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from mibo.errors import ConfigurationError
from mibo.models.config import ProjectConfig
from mibo.models.trace import TracePayload, WorkflowIdentity, format_timestamp
from mibo.senders.base import BaseSender
from mibo.senders.registry import get_sender
from mibo.tracing.builder import TraceIdentifiers, build_trace
from mibo.tracing.delivery import (
    DeliveryOutcome,
    build_request,
    deliver,
    extract_request_id,
)
from mibo.tracing.redaction import count_redactions, redact_records

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TracePipeline:
    """Redact, assemble, and deliver a batch of workflow records.

    Args:
        config: Project configuration for this pipeline.
        sender: Sender used for delivery. When omitted, resolved from
            ``config.sender`` via the sender registry and closed by
            close().
        clock: Callable returning the current time; injectable so tests
            can pin the batch timestamp.

    Raises:
        ConfigurationError: If no sender is given and ``config.sender``
            cannot be resolved.
    """

    def __init__(
        self,
        config: ProjectConfig,
        sender: BaseSender | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.config = config
        self.clock = clock
        self._owns_sender = sender is None
        self.sender = sender if sender is not None else get_sender(config.sender)

    def close(self) -> None:
        """Close the sender if this pipeline created it."""
        if self._owns_sender:
            self.sender.close()

    def __enter__(self) -> TracePipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_records(self, records: list[Any]) -> list[Mapping[str, Any]]:
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise ConfigurationError(
                    f"Input record {index} must be a JSON object, got {type(record).__name__}"
                )
        return records

    def _prepare(
        self,
        records: list[Mapping[str, Any]],
        workflow: WorkflowIdentity | None,
        timestamp: str,
    ) -> TracePayload:
        blocked = self.config.blocked_keys
        input_data: list[Any] = list(records)
        if blocked:
            input_data = redact_records(input_data, blocked)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Redacted %d field(s) using keys %s",
                    count_redactions(records, blocked),
                    sorted(blocked),
                )

        return build_trace(
            input_data,
            workflow,
            self.config.operator_metadata,
            TraceIdentifiers(
                platform_id=self.config.platform_id,
                external_id=self.config.external_id,
            ),
            timestamp,
        )

    def preview(
        self,
        records: list[Any],
        workflow: WorkflowIdentity | None = None,
    ) -> TracePayload:
        """Build the payload that run() would send, without sending it."""
        records = self._check_records(list(records))
        return self._prepare(records, workflow, format_timestamp(self.clock()))

    def run_with_outcome(
        self,
        records: list[Any],
        workflow: WorkflowIdentity | None = None,
    ) -> DeliveryOutcome:
        """Process one batch and return the full delivery outcome.

        Configuration problems (malformed metadata, missing API key,
        non-object records) raise ConfigurationError before the sender
        is called.

        Raises:
            ConfigurationError: On invalid configuration or input.
            TraceDeliveryError: If delivery fails and continue_on_fail
                is disabled.
        """
        records = self._check_records(list(records))
        timestamp = format_timestamp(self.clock())
        payload = self._prepare(records, workflow, timestamp)
        api_key = self.config.require_api_key()

        request = build_request(
            payload,
            server_url=self.config.resolve_server_url(),
            api_key=api_key,
            timeout_ms=self.config.timeout_ms(),
            request_id=extract_request_id(records),
        )
        return deliver(
            payload,
            records,
            self.sender,
            request,
            strategy=self.config.failure_strategy,
            platform_id=self.config.platform_id,
            timestamp=timestamp,
        )

    def run(
        self,
        records: list[Any],
        workflow: WorkflowIdentity | None = None,
    ) -> list[dict[str, Any]]:
        """Process one batch and return the annotated records."""
        return self.run_with_outcome(records, workflow).records
