"""Sender registry: turn the ``sender`` name from mibo.yaml into an instance.

Names are looked up in order among the builtin senders, the
``mibo.senders`` entry-point group of installed distributions, and
finally as an import path (``package.module:Class`` or
``package.module.Class``). The name comes from operator configuration,
so every lookup failure is a ConfigurationError.
"""

from __future__ import annotations

import importlib
from importlib.metadata import EntryPoint, entry_points
from typing import Any

from mibo.errors import ConfigurationError
from mibo.senders.base import BaseSender

ENTRY_POINT_GROUP = "mibo.senders"

BUILTIN_SENDERS: dict[str, str] = {
    "http": "mibo.senders.http_sender:HttpSender",
}


def _plugin_senders() -> dict[str, EntryPoint]:
    return {ep.name: ep for ep in entry_points(group=ENTRY_POINT_GROUP)}


def available_senders() -> list[str]:
    """Names usable as ``sender`` without an import path."""
    return sorted(set(BUILTIN_SENDERS) | set(_plugin_senders()))


def _import_target(target: str) -> Any:
    if ":" in target:
        module_path, _, attr = target.partition(":")
    else:
        module_path, _, attr = target.rpartition(".")
    if not module_path or not attr:
        raise ConfigurationError(
            f"Invalid sender path '{target}'; expected 'package.module:Class'"
        )
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import sender module '{module_path}': {exc}") from exc
    if not hasattr(module, attr):
        raise ConfigurationError(f"Sender module '{module_path}' has no attribute '{attr}'")
    return getattr(module, attr)


def resolve_sender_class(name: str) -> type[BaseSender]:
    """Resolve a sender name to its class without instantiating it.

    Raises:
        ConfigurationError: If the name is unknown, cannot be imported,
            or does not name a BaseSender subclass.
    """
    plugins = _plugin_senders()
    if name in BUILTIN_SENDERS:
        cls = _import_target(BUILTIN_SENDERS[name])
    elif name in plugins:
        try:
            cls = plugins[name].load()
        except (ImportError, AttributeError) as exc:
            raise ConfigurationError(f"Cannot load sender plugin '{name}': {exc}") from exc
    elif "." in name or ":" in name:
        cls = _import_target(name)
    else:
        raise ConfigurationError(
            f"Unknown sender '{name}'. Available senders: {', '.join(available_senders())}. "
            f"Custom senders can be given as 'package.module:Class'."
        )

    if not isinstance(cls, type) or not issubclass(cls, BaseSender):
        raise ConfigurationError(
            f"Sender '{name}' resolved to {cls!r}, which is not a BaseSender subclass"
        )
    return cls


def get_sender(name: str, **options: Any) -> BaseSender:
    """Instantiate the sender configured under name.

    Args:
        name: Builtin name, plugin name, or import path of a BaseSender
            subclass.
        **options: Constructor keyword arguments, e.g. ``session=`` to
            share one requests.Session between HttpSender instances.

    Returns:
        A new sender instance.

    Raises:
        ConfigurationError: If the sender cannot be resolved or rejects
            the given options.
    """
    cls = resolve_sender_class(name)
    try:
        return cls(**options)
    except TypeError as exc:
        raise ConfigurationError(
            f"Sender '{name}' cannot be created with options {sorted(options)}: {exc}"
        ) from exc
