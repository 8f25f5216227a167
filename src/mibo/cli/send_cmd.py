"""mibo send -- forward a batch of records as a trace.

Loads records from a file, applies mibo.yaml plus command-line
overrides, runs the trace pipeline once, renders the outcome, and exits
with a code describing what happened.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from mibo.cli.common import configure_logging, load_cli_config
from mibo.cli.output import output_json, render_outcome
from mibo.errors import ConfigurationError, TraceDeliveryError
from mibo.loader.records import load_records
from mibo.models.trace import WorkflowIdentity
from mibo.pipeline import TracePipeline

console = Console(stderr=True)

# Exit code mapping: outcome -> exit code
EXIT_CODES: dict[str, int] = {
    "delivered": 0,
    "configuration_error": 1,
    "delivery_error": 2,
    "annotated_failure": 3,
}


def send(
    records_path: str = typer.Argument(..., help="JSON, JSONL or YAML file of input records"),
    workflow_id: Optional[str] = typer.Option(None, "--workflow-id", help="Workflow identifier"),
    workflow_name: Optional[str] = typer.Option(None, "--workflow-name", help="Workflow display name"),
    execution_id: Optional[str] = typer.Option(None, "--execution-id", help="Execution identifier"),
    platform_id: Optional[str] = typer.Option(None, "--platform-id", help="Mibo platform ID"),
    external_id: Optional[str] = typer.Option(None, "--external-id", help="Custom trace identifier"),
    clean_pii: Optional[bool] = typer.Option(None, "--clean-pii/--no-clean-pii", help="Scrub PII keys before sending"),
    pii_keys: Optional[str] = typer.Option(None, "--pii-keys", help="Comma-separated keys to redact"),
    include_metadata: Optional[bool] = typer.Option(
        None, "--include-metadata/--no-include-metadata", help="Attach operator metadata"
    ),
    environment: Optional[str] = typer.Option(None, "--environment", help="Metadata: environment"),
    version: Optional[str] = typer.Option(None, "--version-tag", help="Metadata: workflow version"),
    additional_fields: Optional[str] = typer.Option(
        None, "--metadata-json", help="Metadata: additional fields as a JSON object"
    ),
    server_url: Optional[str] = typer.Option(None, "--server-url", help="Override the collector URL"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    continue_on_fail: Optional[bool] = typer.Option(
        None, "--continue-on-fail/--fail-fast", help="Annotate records instead of failing on delivery errors"
    ),
    format_json: bool = typer.Option(False, "--json", help="Output annotated records as JSON to stdout"),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Enable debug logging"),
) -> None:
    """Send input records to Mibo Testing as a single trace."""
    configure_logging(verbose)

    try:
        config = load_cli_config(
            platform_id=platform_id,
            external_id=external_id,
            clean_pii=clean_pii,
            pii_keys=pii_keys,
            include_metadata=include_metadata,
            environment=environment,
            version=version,
            additional_fields=additional_fields,
            server_url=server_url,
            timeout=timeout,
            continue_on_fail=continue_on_fail,
        )
        records = load_records(Path(records_path))
        workflow = WorkflowIdentity(
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            execution_id=execution_id,
        )
        with TracePipeline(config) as pipeline:
            outcome = pipeline.run_with_outcome(records, workflow)
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_CODES["configuration_error"])
    except TraceDeliveryError as exc:
        console.print(f"[bold red]Delivery error:[/bold red] {exc}")
        if exc.hint:
            console.print(f"[dim]{exc.hint}[/dim]")
        raise typer.Exit(code=EXIT_CODES["delivery_error"])

    if format_json:
        output_json(outcome.records)
    else:
        render_outcome(outcome, Console())

    if not outcome.sent:
        raise typer.Exit(code=EXIT_CODES["annotated_failure"])
