"""Exception hierarchy for logsieve."""

from .base import LogsieveError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    PluginLoadError,
)
from .pipeline import (
    CleanupFailure,
    ExtractionError,
    FatalIdentityError,
    IngestionError,
    ProcessingError,
    RunCancelledError,
    RunStateError,
    StageFailure,
    StoreProcessError,
)
from .taxonomy import ErrorCode

__all__ = [
    "LogsieveError",
    "ErrorCode",
    "FatalIdentityError",
    "ProcessingError",
    "StageFailure",
    "ExtractionError",
    "IngestionError",
    "StoreProcessError",
    "RunCancelledError",
    "RunStateError",
    "CleanupFailure",
    "ConfigurationError",
    "InvalidConfigError",
    "PluginLoadError",
]
