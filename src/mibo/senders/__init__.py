"""Senders - the I/O boundary of the trace pipeline.

Re-exports the BaseSender ABC, the request/health dataclasses, the
requests-backed HttpSender, and the sender registry function.
"""

from mibo.senders.base import BaseSender, HealthStatus, TraceRequest
from mibo.senders.http_sender import HttpSender
from mibo.senders.registry import available_senders, get_sender, resolve_sender_class

__all__ = [
    "BaseSender",
    "HealthStatus",
    "HttpSender",
    "TraceRequest",
    "available_senders",
    "get_sender",
    "resolve_sender_class",
]
