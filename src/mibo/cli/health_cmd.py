"""mibo health -- credential and connectivity self-test."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from mibo.cli.common import configure_logging, load_cli_config
from mibo.cli.output import render_health
from mibo.errors import ConfigurationError
from mibo.senders.registry import get_sender

console = Console(stderr=True)


def health(
    server_url: Optional[str] = typer.Option(None, "--server-url", help="Override the collector URL"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Enable debug logging"),
) -> None:
    """Check that the collector is reachable with the configured API key."""
    configure_logging(verbose)

    try:
        config = load_cli_config(server_url=server_url, timeout=timeout)
        api_key = config.require_api_key()
        sender = get_sender(config.sender)
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    target = config.resolve_server_url()
    try:
        status = sender.check_health(target, api_key, config.timeout_ms())
    finally:
        sender.close()

    render_health(status, target, Console())
    if not status.ok:
        raise typer.Exit(code=2)
