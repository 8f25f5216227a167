"""mibo preview -- show the trace payload without sending it."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from mibo.cli.common import configure_logging, load_cli_config
from mibo.errors import ConfigurationError
from mibo.loader.records import load_records
from mibo.models.trace import WorkflowIdentity
from mibo.pipeline import TracePipeline

console = Console(stderr=True)


def preview(
    records_path: str = typer.Argument(..., help="JSON, JSONL or YAML file of input records"),
    workflow_id: Optional[str] = typer.Option(None, "--workflow-id", help="Workflow identifier"),
    workflow_name: Optional[str] = typer.Option(None, "--workflow-name", help="Workflow display name"),
    execution_id: Optional[str] = typer.Option(None, "--execution-id", help="Execution identifier"),
    platform_id: Optional[str] = typer.Option(None, "--platform-id", help="Mibo platform ID"),
    external_id: Optional[str] = typer.Option(None, "--external-id", help="Custom trace identifier"),
    clean_pii: Optional[bool] = typer.Option(None, "--clean-pii/--no-clean-pii", help="Scrub PII keys"),
    pii_keys: Optional[str] = typer.Option(None, "--pii-keys", help="Comma-separated keys to redact"),
    include_metadata: Optional[bool] = typer.Option(
        None, "--include-metadata/--no-include-metadata", help="Attach operator metadata"
    ),
    environment: Optional[str] = typer.Option(None, "--environment", help="Metadata: environment"),
    version: Optional[str] = typer.Option(None, "--version-tag", help="Metadata: workflow version"),
    additional_fields: Optional[str] = typer.Option(
        None, "--metadata-json", help="Metadata: additional fields as a JSON object"
    ),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Enable debug logging"),
) -> None:
    """Build (and optionally redact) the trace payload and print it as JSON.

    Nothing is sent; no API key is required.
    """
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
        )
        records = load_records(Path(records_path))
        with TracePipeline(config) as pipeline:
            payload = pipeline.preview(
                records,
                WorkflowIdentity(
                    workflow_id=workflow_id,
                    workflow_name=workflow_name,
                    execution_id=execution_id,
                ),
            )
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    typer.echo(payload.to_json(indent=2))
