"""Configuration loading and management for logsieve.

Configuration sources are merged in priority order:
    1. Defaults (defined in LogsieveConfig)
    2. Global config (~/.logsieve.toml)
    3. Project config (./logsieve.toml)
    4. Explicit config file
    5. Environment variables (LOGSIEVE_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(drop_after_run=True)
    >>> config.drop_after_run
    True
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

DEFAULT_APP_DIR = "~/.logsieve"
DEFAULT_LOCAL_STORE_PORT = 27018

Verbosity = Literal["quiet", "normal", "verbose"]


@dataclass(frozen=True)
class StoreConnectionInfo:
    """Where the structured store lives.

    The store keeps one SQLite database file per logset under ``data_dir``.
    ``host`` and ``port`` identify the store process that owns ``data_dir``;
    they are ``None`` for a plain on-disk store with no managing process.
    """

    data_dir: str
    host: Optional[str] = None
    port: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.data_dir:
            raise InvalidConfigError("store.data_dir", self.data_dir, "must not be empty")
        if self.port is not None and not 0 < self.port < 65536:
            raise InvalidConfigError("store.port", self.port, "must be between 1 and 65535")

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    def __str__(self) -> str:
        if self.host is not None and self.port is not None:
            return f"{self.host}:{self.port}/{self.data_path}"
        return str(self.data_path)


@dataclass(frozen=True)
class LocalStoreOptions:
    """Options for the run-managed local store process.

    Attributes:
        port: TCP port the local store daemon binds
        purge_on_startup: Remove the instance's prior on-disk data before starting
        startup_timeout_seconds: How long to wait for the daemon to bind its port
        command: Launch command override; ``{port}`` and ``{data_dir}`` are
            substituted. Empty means the bundled daemon.
        root_dir: Directory holding one subdirectory per instance (by port).
            Empty means ``<app_dir>/local_store``.
    """

    port: int = DEFAULT_LOCAL_STORE_PORT
    purge_on_startup: bool = True
    startup_timeout_seconds: float = 15.0
    command: tuple[str, ...] = ()
    root_dir: str = ""

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise InvalidConfigError("local_store.port", self.port, "must be between 1 and 65535")
        if self.startup_timeout_seconds <= 0:
            raise InvalidConfigError(
                "local_store.startup_timeout_seconds",
                self.startup_timeout_seconds,
                "must be positive",
            )


@dataclass(frozen=True)
class LogsieveConfig:
    """Process-wide configuration.

    Empty directory settings are derived from ``app_dir``.

    Attributes:
        Locations:
            app_dir: Root for all application state
            temp_dir: Run-scoped temp directories live below this
            output_dir: Plugin report artifacts, one subdirectory per run
            publish_dir: Destination for published reports
            store_dir: Data directory of the structured store

        Local store:
            use_local_store: Run a local store process for each run by default
            local_store: LocalStoreOptions

        Run defaults:
            default_plugins: Plugin selection when a run names none
            drop_after_run: Drop the run's database during teardown
            publish_reports: Publish plugin reports after analysis

        Tuning:
            batch_size: Records per insert batch during ingestion
            download_timeout_seconds: Timeout for fetching remote logsets
            verbosity: Logging verbosity level
    """

    app_dir: str = DEFAULT_APP_DIR
    temp_dir: str = ""
    output_dir: str = ""
    publish_dir: str = ""
    store_dir: str = ""

    use_local_store: bool = False
    local_store: LocalStoreOptions = field(default_factory=LocalStoreOptions)

    default_plugins: list[str] = field(default_factory=lambda: ["default"])
    drop_after_run: bool = False
    publish_reports: bool = False

    batch_size: int = 1000
    download_timeout_seconds: int = 60
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        if not self.app_dir:
            raise InvalidConfigError("app_dir", self.app_dir, "must not be empty")
        if self.batch_size < 1:
            raise InvalidConfigError("batch_size", self.batch_size, "must be at least 1")
        if self.download_timeout_seconds < 1:
            raise InvalidConfigError(
                "download_timeout_seconds", self.download_timeout_seconds, "must be at least 1"
            )
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet/normal/verbose")

    def _derived(self, value: str, default_name: str) -> Path:
        if value:
            return Path(value).expanduser()
        return self.app_path / default_name

    @property
    def app_path(self) -> Path:
        return Path(self.app_dir).expanduser()

    @property
    def temp_path(self) -> Path:
        return self._derived(self.temp_dir, "temp")

    @property
    def output_path(self) -> Path:
        return self._derived(self.output_dir, "output")

    @property
    def publish_path(self) -> Path:
        return self._derived(self.publish_dir, "published")

    @property
    def store_path(self) -> Path:
        return self._derived(self.store_dir, "store")

    @property
    def local_store_root(self) -> Path:
        return self._derived(self.local_store.root_dir, "local_store")

    @property
    def plugin_output_database(self) -> Path:
        """SQLite file receiving plugin backing data."""
        return self.output_path / "plugin_output.db"

    @property
    def store_connection(self) -> StoreConnectionInfo:
        """Connection info for the configured (non-local) store."""
        return StoreConnectionInfo(data_dir=str(self.store_path))


def load_config(config_file: Optional[Path] = None, **overrides) -> LogsieveConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options never mask file settings.

    Returns:
        Validated LogsieveConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
        InvalidConfigError: If a value fails validation
    """
    merged: dict = {}

    global_config = Path.home() / ".logsieve.toml"
    if global_config.exists():
        _merge(merged, _load_toml_file(global_config), global_config)

    project_config = Path.cwd() / "logsieve.toml"
    if project_config.exists():
        _merge(merged, _load_toml_file(project_config), project_config)

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        _merge(merged, _load_toml_file(config_file), config_file)

    merged.update(_load_env_vars())

    # Convert verbosity boolean flags to string
    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    # [local_store] merges key by key: files first, then CLI overrides
    local_dict = dict(merged.pop("local_store", None) or {})
    local_overrides = overrides.pop("local_store", None) or {}
    local_dict.update({k: v for k, v in local_overrides.items() if v is not None})

    merged.update({k: v for k, v in overrides.items() if v is not None})

    if local_dict:
        if "command" in local_dict:
            local_dict["command"] = tuple(local_dict["command"])
        try:
            merged["local_store"] = LocalStoreOptions(**local_dict)
        except TypeError as e:
            raise ConfigurationError(f"Invalid [local_store] config: {e}")

    try:
        return LogsieveConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")


def _merge(merged: dict, loaded: dict, source: Path) -> None:
    """Merge a parsed TOML document into ``merged``.

    ``[store]`` contributes ``store_dir``; ``[local_store]`` tables merge key
    by key so a project file can override a single global option.
    """
    loaded = dict(loaded)
    store_table = loaded.pop("store", None)
    if store_table is not None:
        if not isinstance(store_table, dict):
            raise ConfigurationError(f"Invalid [store] table in '{source}'")
        if "data_dir" in store_table:
            loaded["store_dir"] = store_table["data_dir"]

    local_table = loaded.pop("local_store", None)
    if local_table is not None:
        if not isinstance(local_table, dict):
            raise ConfigurationError(f"Invalid [local_store] table in '{source}'")
        merged["local_store"] = {**merged.get("local_store", {}), **local_table}

    merged.update(loaded)


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from LOGSIEVE_* environment variables.

    Only scalar top-level fields are read, e.g. ``LOGSIEVE_APP_DIR``,
    ``LOGSIEVE_DROP_AFTER_RUN``, ``LOGSIEVE_BATCH_SIZE``.

    Returns:
        Dict of field_name -> parsed_value for any LOGSIEVE_* vars found.
    """
    type_hints = get_type_hints(LogsieveConfig)

    result: dict[str, Any] = {}

    for field_name in LogsieveConfig.__dataclass_fields__:
        env_key = f"LOGSIEVE_{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(field_name, env_value, f"{env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Returns None for types that cannot be expressed as a single env value.

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Skip list and nested types - too complex for env vars
    if origin is list or type_hint is list or type_hint is LocalStoreOptions:
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If TOML support is missing or parsing fails
    """
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
