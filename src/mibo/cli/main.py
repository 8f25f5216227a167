"""Mibo CLI entry point."""

import typer

from mibo import __version__
from mibo.cli.health_cmd import health
from mibo.cli.init_cmd import init
from mibo.cli.preview_cmd import preview
from mibo.cli.send_cmd import send

app = typer.Typer(
    name="mibo",
    help="Forward workflow records to Mibo Testing as traces",
    no_args_is_help=True,
)

# Register subcommands
app.command()(health)
app.command()(init)
app.command()(preview)
app.command()(send)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"mibo {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Forward workflow records to Mibo Testing as traces."""
