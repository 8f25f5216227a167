"""Iterative traversal of JSON-like record values.

Records may nest arbitrarily deep, so these walkers keep an explicit
stack instead of recursing. Depth is bounded by memory rather than by
the interpreter's recursion limit.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date, datetime, time
from typing import Any

from mibo.errors import CyclicValueError

CONTAINER_TYPES = (dict, list, tuple)
JSON_SCALAR_TYPES = (str, int, float, bool, type(None))


def _entries(value: Any) -> Iterator[tuple[Any, Any]]:
    if isinstance(value, dict):
        return iter(value.items())
    return enumerate(value)


def _empty_like(value: Any) -> dict[Any, Any] | list[Any]:
    return {} if isinstance(value, dict) else []


def _store(target: dict[Any, Any] | list[Any], key: Any, item: Any) -> None:
    if isinstance(target, dict):
        target[key] = item
    else:
        target.append(item)


def rebuild(
    value: Any,
    blocked_keys: frozenset[str] | set[str] = frozenset(),
    placeholder: Any = None,
    convert: Callable[[Any], Any] | None = None,
) -> Any:
    """Copy value, replacing blocked mapping fields and converting leaves.

    Dicts are rebuilt with the same keys in the same order; lists and
    tuples become lists. A field whose key is in blocked_keys gets
    placeholder and is not descended into. Every other non-container
    value is passed through convert, or kept as-is when convert is None.

    Raises:
        CyclicValueError: If a container is reachable from itself.
    """
    if not isinstance(value, CONTAINER_TYPES):
        return convert(value) if convert else value

    root = _empty_like(value)
    path = {id(value)}
    stack = [(value, root, _entries(value))]
    while stack:
        source, target, entries = stack[-1]
        for key, item in entries:
            if isinstance(target, dict) and key in blocked_keys:
                target[key] = placeholder
                continue
            if isinstance(item, CONTAINER_TYPES):
                if id(item) in path:
                    raise CyclicValueError("Value contains a reference cycle")
                child = _empty_like(item)
                _store(target, key, child)
                path.add(id(item))
                stack.append((item, child, _entries(item)))
                break
            _store(target, key, convert(item) if convert else item)
        else:
            stack.pop()
            path.discard(id(source))
    return root


def _jsonable_scalar(value: Any) -> Any:
    if isinstance(value, JSON_SCALAR_TYPES):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def to_jsonable(value: Any) -> Any:
    """Copy value into plain JSON types.

    Dates and times (as produced by YAML loaders) become ISO-8601
    strings; any other non-JSON scalar becomes its str().

    Raises:
        CyclicValueError: If value contains a reference cycle.
    """
    return rebuild(value, convert=_jsonable_scalar)
