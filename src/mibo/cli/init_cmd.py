"""mibo init CLI command for project scaffolding."""

from __future__ import annotations

from pathlib import Path

import typer

from mibo.scaffold.init import ProjectExistsError, scaffold_project


def init(
    directory: str = typer.Argument(".", help="Directory to initialize"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing files"
    ),
) -> None:
    """Initialize a mibo.yaml configuration file.

    The generated file documents every option with its default value.
    No prompts, no interaction.
    """
    target = Path(directory).resolve()

    try:
        scaffold_project(target, force=force)
    except ProjectExistsError as e:
        typer.echo(f"Error: Files already exist: {', '.join(e.conflicting_files)}", err=True)
        typer.echo("Use --force to overwrite existing files.", err=True)
        raise typer.Exit(code=1)
