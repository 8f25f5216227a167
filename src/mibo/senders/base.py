"""BaseSender ABC and the request/health dataclasses it exchanges.

A sender is the only component that performs I/O. The pipeline hands it
a fully built TraceRequest and expects either a parsed JSON response or
a TransportError; it never sees the underlying HTTP library.

These are plain dataclasses (not Pydantic) since they never leave the
process.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from mibo.errors import TransportError


@dataclass
class TraceRequest:
    """A single HTTP-shaped request for a sender to execute."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    timeout_ms: int = 30_000


@dataclass
class HealthStatus:
    """Result of a credential/connectivity self-test."""

    ok: bool
    status_code: int | None = None
    detail: str = ""


class BaseSender(ABC):
    """Abstract base class for trace senders.

    Subclasses must implement send(). check_health() has a default
    implementation that issues ``GET {server_url}/health`` through send().
    """

    @abstractmethod
    def send(self, request: TraceRequest) -> dict[str, Any]:
        """Execute the request and return the decoded JSON response.

        Args:
            request: The request to perform.

        Returns:
            Decoded response body (empty dict for an empty body).

        Raises:
            TransportError: If the request fails, times out, or the
                server answers with a non-2xx status.
        """
        ...

    def check_health(self, server_url: str, api_key: str, timeout_ms: int = 10_000) -> HealthStatus:
        """Probe the collector's health endpoint with the given credentials."""
        request = TraceRequest(
            method="GET",
            url=f"{server_url.rstrip('/')}/health",
            headers={"X-API-Key": api_key},
            timeout_ms=timeout_ms,
        )
        try:
            self.send(request)
        except TransportError as exc:
            return HealthStatus(ok=False, status_code=exc.status_code, detail=str(exc))
        return HealthStatus(ok=True, detail="ok")

    def close(self) -> None:
        """Release any resources held by the sender."""

    def sender_name(self) -> str:
        """Return the sender name; defaults to the class name."""
        return type(self).__name__
