"""``logsieve run``: process one logset through the full pipeline."""

import signal
from pathlib import Path
from typing import List, Optional

import typer

from ..cancellation import CancellationToken
from ..logging_config import setup_logging
from ..models import RunRequest
from ..orchestrator import RunOrchestrator
from . import app
from ._common import console, resolve_config


@app.command()
def run(
    target: str = typer.Argument(
        ...,
        help="Logset to process: a directory, archive, single log file, URL, or a logset hash",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Reprocess the logset even if it was already processed"
    ),
    drop: Optional[bool] = typer.Option(
        None,
        "--drop/--retain",
        help="Drop the logset database after the run (default from config)",
    ),
    publish: Optional[bool] = typer.Option(
        None, "--publish/--no-publish", help="Publish plugin reports after analysis"
    ),
    local_store: Optional[bool] = typer.Option(
        None,
        "--local-store/--no-local-store",
        help="Run a local store process for the duration of the run",
    ),
    port: Optional[int] = typer.Option(None, "--port", help="Local store port"),
    purge_local_store: Optional[bool] = typer.Option(
        None,
        "--purge-local-store/--keep-local-store",
        help="Purge local store data before starting it",
    ),
    plugin: Optional[List[str]] = typer.Option(
        None,
        "--plugin",
        "-p",
        help="Plugin to run (repeatable). 'all' runs every plugin, 'default' the default set",
    ),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only log errors"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also append logs to FILE"),
) -> None:
    """
    Run the pipeline for one logset.

    [bold cyan]Examples:[/bold cyan]

      logsieve run ./logs.zip

      logsieve run ./logs --drop --plugin level_summary

      logsieve run 0123456789abcdef0123456789abcdef --plugin all
    """
    logger = setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file else None)
    settings = resolve_config(
        config=config,
        port=port,
        purge_local_store=purge_local_store,
        verbose=verbose,
        quiet=quiet,
    )

    request = RunRequest.create(
        target,
        settings,
        force_reprocess=force,
        drop_after_run=drop,
        publish_reports=publish,
        use_local_store=local_store,
        plugin_names=tuple(plugin) if plugin else None,
    )

    token = CancellationToken()
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: token.cancel())
    try:
        orchestrator = RunOrchestrator.from_config(settings)
        orchestrator.initialize()
        result = orchestrator.execute(request, token)
    except KeyboardInterrupt:
        logger.info("Run interrupted by user")
        console.print("\n[yellow]Run interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error during run")
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGTERM, previous)

    for failure in result.cleanup_failures:
        console.print(f"[yellow]Cleanup warning[/yellow] ({failure.step}): {failure.message}")

    if not result.succeeded:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)

    if quiet and result.summary is not None:
        # Summary lines are logged at INFO, which --quiet suppresses
        console.print(result.summary.render())
