"""Error hierarchy for the trace pipeline.

Configuration errors are always fatal and raised before any network
call. Transport errors come from a sender and are either absorbed into
per-record annotations or escalated to a TraceDeliveryError, depending
on the batch failure strategy.
"""

from __future__ import annotations


class MiboError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MiboError):
    """Raised when operator-supplied configuration is invalid.

    Examples: malformed JSON in additional metadata fields, a missing
    API key, or a mibo.yaml file that fails schema validation.
    """


class TransportError(MiboError):
    """Raised by a sender when a request could not be completed.

    Attributes:
        status_code: HTTP status code of the response, when one was
            received (None for connection failures and timeouts).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TraceDeliveryError(MiboError):
    """Fatal batch-level error raised when delivery fails in fail-fast mode.

    Attributes:
        hint: Remediation guidance suitable for showing to an operator.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.hint = hint
        super().__init__(message)


class RedactionError(MiboError, ValueError):
    """Raised when a value cannot be redacted (e.g. it contains a cycle)."""


class CyclicValueError(MiboError, ValueError):
    """Raised when a record value refers back to one of its own containers."""
