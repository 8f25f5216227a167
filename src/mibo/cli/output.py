"""Rich terminal output for delivery results and payload previews."""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from mibo.senders.base import HealthStatus
    from mibo.tracing.delivery import DeliveryOutcome


def render_outcome(outcome: DeliveryOutcome, console: Console) -> None:
    """Render a compact key-value summary of a batch delivery.

    Args:
        outcome: The DeliveryOutcome to display.
        console: Rich Console for output.
    """
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    annotation = outcome.annotation
    if outcome.sent:
        table.add_row("Status", "[bold green]✓ SENT[/bold green]")
        table.add_row("Trace ID", annotation.trace_id or "unknown")
    else:
        table.add_row("Status", "[bold red]✗ NOT SENT[/bold red]")
        table.add_row("Error", f"[red]{annotation.error}[/red]")

    table.add_row("Records", str(len(outcome.records)))
    table.add_row("Platform", annotation.platform_id)
    table.add_row("Timestamp", annotation.timestamp)

    console.print()
    console.print(table)


def render_health(status: HealthStatus, server_url: str, console: Console) -> None:
    """Render the result of a credential self-test."""
    if status.ok:
        console.print(f"[bold green]✓[/bold green] {server_url} is reachable")
        return
    code = f" (HTTP {status.status_code})" if status.status_code is not None else ""
    console.print(f"[bold red]✗[/bold red] {server_url} health check failed{code}")
    if status.detail:
        console.print(f"  [dim]{status.detail}[/dim]")


def output_json(data: Any) -> None:
    """Write data as pure JSON to stdout.

    No Rich markup, no color, no extra text. Suitable for piping into
    other tools. Values json cannot encode, such as dates loaded from
    YAML records, are written as their str().
    """
    sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False, default=str))
    sys.stdout.write("\n")
