"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="logsieve",
    help="logsieve - log bundle ingestion and analysis",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def _main(
    version: bool = typer.Option(False, "--version", help="Show version and exit", is_eager=True),
) -> None:
    if version:
        console.print(f"[bold cyan]logsieve[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


# Import subcommands to register them
from .run import run as _run  # noqa: F401, E402
from .admin import hash_target as _hash_target, plugins as _plugins, purge_temp as _purge_temp, status as _status  # noqa: F401, E402
