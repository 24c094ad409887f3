"""
Logging configuration for logsieve.

Run progress and the end-of-run summary are emitted at INFO, so the default
level is INFO; ``--quiet`` drops to ERROR and ``--verbose`` raises to DEBUG.

Terminal output goes through rich. An optional log file receives plain lines
plus the structured payload that run and cleanup failures attach through
``extra=`` (see ``LogsieveError.to_json`` and ``CleanupFailure.to_json``).
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "logsieve"

# ``extra=`` keys whose values are serialized into file log lines
STRUCTURED_FIELDS = ("run_error", "cleanup_failure")

# Libraries that log per request or per connection at INFO
_CHATTY_LOGGERS = ("uvicorn", "uvicorn.access", "urllib3", "httpx")

_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredFileFormatter(logging.Formatter):
    """Plain-text formatter that appends structured failure payloads as JSON."""

    def __init__(self) -> None:
        super().__init__(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        payload = {
            key: getattr(record, key) for key in STRUCTURED_FIELDS if hasattr(record, key)
        }
        if payload:
            line = f"{line} {json.dumps(payload, sort_keys=True, default=str)}"
        return line


def resolve_level(verbose: bool = False, quiet: bool = False) -> int:
    """Map the CLI verbosity flags to a level. ``quiet`` wins over ``verbose``."""
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.INFO


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure logging with rich handler for colored output.

    Args:
        verbose: Enable DEBUG level logging, source paths and traceback locals
        quiet: Suppress all but ERROR level logging
        log_file: Optional file path to append logs to; parent directories
            are created

    Returns:
        Configured logger instance for logsieve
    """
    level = resolve_level(verbose, quiet)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            markup=False,
            show_time=True,
            show_path=verbose,
        )
    ]

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(StructuredFileFormatter())
        handlers.append(file_handler)

    # force=True so repeated CLI invocations in one process reconfigure
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True
    )

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else max(level, logging.WARNING))

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``logsieve`` namespace.

    ``get_logger(__name__)`` inside the package returns the module logger
    unchanged; any other name is nested under ``logsieve.``.
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
