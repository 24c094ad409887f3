"""Configuration exceptions: settings files, values, plugin selection."""

from typing import Any, List

from .base import LogsieveError
from .taxonomy import ErrorCode


class ConfigurationError(LogsieveError):
    """Base class for configuration-related errors."""

    code = ErrorCode.LS700


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class PluginLoadError(ConfigurationError):
    """Raised when a requested plugin is not available."""

    code = ErrorCode.LS701

    def __init__(self, unknown: List[str], available: List[str]):
        super().__init__(
            f"Unknown plugin(s) requested: {', '.join(unknown)}",
            details={"available": ", ".join(available)},
        )
        self.unknown = unknown
        self.available = available
