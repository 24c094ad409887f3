"""Maintenance commands: plugins, status, purge-temp, hash."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..exceptions import FatalIdentityError
from ..extraction import LogsetExtractor
from ..identity import HashIdentityResolver
from ..models import HASH_ID_PATTERN, RunContext, RunRequest, RunTarget
from ..plugins import PluginLoader
from ..store import LogsetStatusChecker
from . import app
from ._common import console, resolve_config


@app.command()
def plugins() -> None:
    """List available analysis plugins."""
    available = PluginLoader().available_plugins()
    if not available:
        console.print("[yellow]No plugins available[/yellow]")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Plugin", style="cyan", min_width=20)
    table.add_column("Default", justify="center")
    table.add_column("Description")
    for plugin in available:
        table.add_row(plugin.name, "yes" if plugin.default else "", plugin.description)
    console.print(table)


@app.command()
def status(
    fingerprint: str = typer.Argument(..., help="Logset hash to look up"),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Config file"),
) -> None:
    """Show whether a logset hash has been processed into the store."""
    if not HASH_ID_PATTERN.match(fingerprint):
        console.print(f"[red]Not a logset hash:[/red] {fingerprint}")
        raise typer.Exit(2)

    settings = resolve_config(config=config)
    request = RunRequest(target=RunTarget.parse(fingerprint), config=settings)
    context = RunContext.for_request(request)
    context.logset_hash = fingerprint.lower()

    result = LogsetStatusChecker().get_status(request, context)
    console.print(f"{context.logset_hash}: [bold]{result.value}[/bold]")
    console.print(f"Store: [blue]{context.store_connection}[/blue]")


@app.command("purge-temp")
def purge_temp(
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Config file"),
) -> None:
    """Remove temp state left behind by aborted runs."""
    settings = resolve_config(config=config)
    removed = LogsetExtractor(settings).cleanup_all()
    console.print(f"[green]Removed {removed} temp entr{'y' if removed == 1 else 'ies'}[/green]")


@app.command("hash")
def hash_target(
    target: str = typer.Argument(..., help="Directory, archive, log file or URL"),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Config file"),
) -> None:
    """Print the logset hash of a target."""
    settings = resolve_config(config=config)
    resolver = HashIdentityResolver(settings.download_timeout_seconds)
    try:
        resolution = resolver.resolve(RunTarget.parse(target))
    except FatalIdentityError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(resolution.fingerprint)
