"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ..config import LogsieveConfig, load_config
from ..exceptions import ConfigurationError

console = Console()


def resolve_config(
    config: Optional[Path] = None,
    port: Optional[int] = None,
    purge_local_store: Optional[bool] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> LogsieveConfig:
    """Build config from CLI options; exits with code 1 on invalid config."""
    local_store = {}
    if port is not None:
        local_store["port"] = port
    if purge_local_store is not None:
        local_store["purge_on_startup"] = purge_local_store
    try:
        return load_config(
            config_file=config, verbose=verbose, quiet=quiet, local_store=local_store
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
