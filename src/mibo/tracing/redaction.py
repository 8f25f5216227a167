"""Key-based PII redaction for workflow records.

Walks arbitrary JSON-like values and replaces the value of every mapping
field whose key is in a block-list with a fixed placeholder. Matching is
exact and case-sensitive; values themselves are never inspected.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mibo.errors import CyclicValueError, RedactionError
from mibo.values import rebuild

REDACTED_PLACEHOLDER = "[REDACTED]"

# Keys scrubbed when PII cleaning is enabled without an explicit list.
DEFAULT_PII_KEYS = "email, password, phone, address"


def parse_pii_keys(keys: str | Iterable[str] | None) -> frozenset[str]:
    """Parse a comma-separated key list into a block-list.

    Entries are trimmed and empty entries dropped, so ``"email, ,phone"``
    yields ``{"email", "phone"}``. An iterable of strings is accepted as
    well and normalized the same way.

    Args:
        keys: Comma-separated string, iterable of keys, or None.

    Returns:
        Frozen set of keys to redact.
    """
    if keys is None:
        return frozenset()
    if isinstance(keys, str):
        keys = keys.split(",")
    return frozenset(k.strip() for k in keys if k.strip())


def redact(value: Any, blocked_keys: frozenset[str] | set[str]) -> Any:
    """Return a copy of value with blocked keys replaced by [REDACTED].

    Primitives (and None) are returned unchanged. Lists and tuples are
    rebuilt element-wise as lists; dicts are rebuilt with the same keys
    in the same order. A key matching at several nesting depths is
    redacted at each depth independently.

    The input is never mutated. With an empty block-list the result is
    a plain structural copy. The walk is iterative, so nesting depth is
    not limited by the recursion limit.

    Args:
        value: JSON-like value (dict, list, or primitive).
        blocked_keys: Keys whose values must be replaced.

    Returns:
        Redacted copy with the same shape as value.

    Raises:
        RedactionError: If value contains a reference cycle.
    """
    try:
        return rebuild(value, blocked_keys, placeholder=REDACTED_PLACEHOLDER)
    except CyclicValueError as exc:
        raise RedactionError("Cannot redact a value containing a reference cycle") from exc


def redact_records(
    records: list[dict[str, Any]],
    blocked_keys: frozenset[str] | set[str],
) -> list[dict[str, Any]]:
    """Apply redact() to each record of a batch, preserving order."""
    return [redact(record, blocked_keys) for record in records]


def count_redactions(value: Any, blocked_keys: frozenset[str] | set[str]) -> int:
    """Count the fields redact() would replace in value.

    Used for debug logging on values that already went through redact(),
    so value must be acyclic. Matched fields are not descended into.
    """
    total = 0
    pending = [value]
    while pending:
        current = pending.pop()
        if isinstance(current, dict):
            for key, item in current.items():
                if key in blocked_keys:
                    total += 1
                else:
                    pending.append(item)
        elif isinstance(current, (list, tuple)):
            pending.extend(current)
    return total
