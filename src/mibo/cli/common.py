"""Helpers shared by the CLI commands: config overrides and logging setup."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from mibo.errors import ConfigurationError
from mibo.models.config import ProjectConfig, load_project_config


def configure_logging(verbose: bool) -> None:
    """Route package logging to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_cli_config(
    *,
    platform_id: str | None = None,
    external_id: str | None = None,
    clean_pii: bool | None = None,
    pii_keys: str | None = None,
    include_metadata: bool | None = None,
    environment: str | None = None,
    version: str | None = None,
    additional_fields: str | None = None,
    server_url: str | None = None,
    timeout: float | None = None,
    continue_on_fail: bool | None = None,
    sender: str | None = None,
) -> ProjectConfig:
    """Load mibo.yaml and apply command-line overrides on top.

    Options left as None keep the file's value. Passing any metadata
    field turns include_metadata on unless it was set explicitly.

    Raises:
        ConfigurationError: If mibo.yaml is invalid or an override fails
            validation.
    """
    config = load_project_config()

    top: dict[str, Any] = {
        "platform_id": platform_id,
        "external_id": external_id,
        "clean_pii": clean_pii,
        "pii_keys": pii_keys,
        "include_metadata": include_metadata,
        "continue_on_fail": continue_on_fail,
        "sender": sender,
    }
    metadata = {
        "environment": environment,
        "version": version,
        "additional_fields": additional_fields,
    }
    options = {"server_url": server_url, "timeout": timeout}

    updates = {k: v for k, v in top.items() if v is not None}
    metadata_updates = {k: v for k, v in metadata.items() if v is not None}
    options_updates = {k: v for k, v in options.items() if v is not None}

    if metadata_updates:
        updates["metadata"] = config.metadata.model_copy(update=metadata_updates)
        updates.setdefault("include_metadata", True)
    if options_updates:
        updates["options"] = config.options.model_copy(update=options_updates)

    if not updates:
        return config
    # model_copy does not validate; overrides must pass the same checks as the file.
    merged = config.model_copy(update=updates)
    return _revalidate(merged)


def _revalidate(config: ProjectConfig) -> ProjectConfig:
    data = config.model_dump()
    data["credentials"] = config.credentials
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid option: {exc}") from exc
