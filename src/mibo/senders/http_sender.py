"""HTTP sender backed by a requests Session."""

from __future__ import annotations

import logging
from typing import Any

import requests

from mibo.errors import TransportError
from mibo.senders.base import BaseSender, HealthStatus, TraceRequest

logger = logging.getLogger(__name__)

# Longest slice of an error response body quoted in a TransportError.
MAX_ERROR_BODY = 500


def _snippet(text: str) -> str:
    text = text.strip()
    if len(text) <= MAX_ERROR_BODY:
        return text
    return text[:MAX_ERROR_BODY] + "... [truncated]"


class HttpSender(BaseSender):
    """Send trace requests over HTTP using requests.

    Timeouts arrive in milliseconds and are converted to the seconds
    requests expects. Every failure mode (connection error, timeout,
    non-2xx status, undecodable body) surfaces as TransportError.

    Args:
        session: Optional preconfigured requests.Session. A new one is
            created (and owned by this sender) when omitted.
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._owns_session = session is None
        self.session = session or requests.Session()

    def _perform(self, request: TraceRequest) -> requests.Response:
        timeout = request.timeout_ms / 1000
        logger.debug("%s %s (timeout=%.1fs)", request.method, request.url, timeout)
        try:
            return self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"Request to {request.url} timed out after {timeout:g}s"
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {request.url} failed: {exc}") from exc

    def send(self, request: TraceRequest) -> dict[str, Any]:
        response = self._perform(request)
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"Server returned HTTP {response.status_code}: {_snippet(response.text)}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(
                "Server returned a response that is not valid JSON",
                status_code=response.status_code,
            ) from exc
        # Anything other than an object carries no trace id.
        return data if isinstance(data, dict) else {}

    def check_health(self, server_url: str, api_key: str, timeout_ms: int = 10_000) -> HealthStatus:
        """Probe ``GET {server_url}/health``; the body is not interpreted."""
        request = TraceRequest(
            method="GET",
            url=f"{server_url.rstrip('/')}/health",
            headers={"X-API-Key": api_key},
            timeout_ms=timeout_ms,
        )
        try:
            response = self._perform(request)
        except TransportError as exc:
            return HealthStatus(ok=False, detail=str(exc))
        ok = 200 <= response.status_code < 300
        detail = "ok" if ok else _snippet(response.text) or f"HTTP {response.status_code}"
        return HealthStatus(ok=ok, status_code=response.status_code, detail=detail)

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "HttpSender":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
