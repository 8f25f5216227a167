"""Mibo trace forwarder: redact workflow records and ship them as traces."""

__version__ = "0.1.0"
