"""Run data model: targets, requests, the mutable run context, outcomes."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from .config import LocalStoreOptions, LogsieveConfig, StoreConnectionInfo
from .exceptions import RunStateError

# Fingerprints are MD5 hex digests
HASH_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")


class TargetKind(Enum):
    PATH = "path"
    URL = "url"
    HASH_ID = "hash_id"


@dataclass(frozen=True)
class RunTarget:
    """A raw logset location or a pre-resolved fingerprint."""

    value: str
    kind: TargetKind

    @classmethod
    def parse(cls, value: str) -> RunTarget:
        """Classify a user-supplied target.

        A 32-character hex string is a fingerprint unless a file or directory
        with that name exists.
        """
        value = value.strip()
        if value.startswith(("http://", "https://")):
            return cls(value, TargetKind.URL)
        if HASH_ID_PATTERN.match(value) and not Path(value).exists():
            return cls(value.lower(), TargetKind.HASH_ID)
        return cls(value, TargetKind.PATH)

    @property
    def is_hash_id(self) -> bool:
        return self.kind is TargetKind.HASH_ID

    @property
    def is_url(self) -> bool:
        return self.kind is TargetKind.URL

    @property
    def path(self) -> Path:
        if self.kind is not TargetKind.PATH:
            raise ValueError(f"Target {self.value!r} is not a filesystem path")
        return Path(self.value).expanduser()

    def __str__(self) -> str:
        return self.value


def new_run_id() -> str:
    """Timestamped run identifier, unique per invocation."""
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:6]}"


def logset_database_name(logset_hash: str) -> str:
    """Database name holding the parsed records of a logset."""
    return logset_hash.lower()


@dataclass(frozen=True)
class RunRequest:
    """Immutable description of one pipeline run."""

    target: RunTarget
    config: LogsieveConfig
    run_id: str = field(default_factory=new_run_id)
    force_reprocess: bool = False
    drop_after_run: bool = False
    publish_reports: bool = False
    use_local_store: bool = False
    plugin_names: Tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        target: str,
        config: LogsieveConfig,
        *,
        force_reprocess: bool = False,
        drop_after_run: Optional[bool] = None,
        publish_reports: Optional[bool] = None,
        use_local_store: Optional[bool] = None,
        plugin_names: Optional[Tuple[str, ...]] = None,
        run_id: Optional[str] = None,
    ) -> RunRequest:
        """Build a request, falling back to config defaults for unset flags."""
        return cls(
            target=RunTarget.parse(target),
            config=config,
            run_id=run_id or new_run_id(),
            force_reprocess=force_reprocess,
            drop_after_run=config.drop_after_run if drop_after_run is None else drop_after_run,
            publish_reports=config.publish_reports if publish_reports is None else publish_reports,
            use_local_store=config.use_local_store if use_local_store is None else use_local_store,
            plugin_names=tuple(plugin_names) if plugin_names else tuple(config.default_plugins),
        )

    @property
    def local_store(self) -> LocalStoreOptions:
        return self.config.local_store


class LogsetStatus(Enum):
    """Processing state of a fingerprint in the metadata index."""

    NON_EXISTENT = "non_existent"
    INCOMPLETE = "incomplete"
    PROCESSED = "processed"


class RunState(Enum):
    """States reached by the orchestrator, in pipeline order."""

    INIT = "init"
    IDENTITY_RESOLVED = "identity_resolved"
    LOCAL_STORE_STARTED = "local_store_started"
    EXTRACTED = "extracted"
    STATUS_CHECKED = "status_checked"
    SKIPPED = "skipped"
    INGESTED = "ingested"
    VALIDATED = "validated"
    ANALYZED = "analyzed"
    SUMMARIZED = "summarized"
    TORN_DOWN = "torn_down"
    LOCAL_STORE_STOPPED = "local_store_stopped"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PluginOutcome:
    """Result of running one analysis plugin."""

    plugin_name: str
    success: bool
    artifacts: Tuple[Path, ...] = ()
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def artifact_count(self) -> int:
        return len(self.artifacts)


@dataclass(frozen=True)
class PublishedReport:
    """A report artifact copied to the publish destination."""

    plugin_name: str
    name: str
    location: Path


@dataclass(frozen=True)
class RunCapabilities:
    """Lifecycle guards evaluated once at run start."""

    manages_local_store: bool = False
    drop_requested: bool = False
    publishes_reports: bool = False

    @classmethod
    def from_request(cls, request: RunRequest) -> RunCapabilities:
        return cls(
            manages_local_store=request.use_local_store,
            drop_requested=request.drop_after_run,
            publishes_reports=request.publish_reports,
        )


@dataclass
class RunContext:
    """Mutable state accumulated during one orchestrator run.

    ``logset_hash`` is write-once and ``reused_existing`` can only go from
    False to True; both are guarded by their accessors.
    """

    run_id: str
    capabilities: RunCapabilities = field(default_factory=RunCapabilities)
    force_reprocess: bool = False
    database_name: str = ""
    plugin_types_to_execute: FrozenSet[type] = frozenset()
    plugin_outcomes: List[PluginOutcome] = field(default_factory=list)
    published_reports: List[PublishedReport] = field(default_factory=list)
    store_connection: Optional[StoreConnectionInfo] = None
    root_log_directory: Optional[Path] = None
    logset_status: Optional[LogsetStatus] = None
    transitions: List[RunState] = field(default_factory=lambda: [RunState.INIT])
    _logset_hash: str = ""
    _reused_existing: bool = False

    @classmethod
    def for_request(cls, request: RunRequest) -> RunContext:
        return cls(
            run_id=request.run_id,
            capabilities=RunCapabilities.from_request(request),
            force_reprocess=request.force_reprocess,
            store_connection=request.config.store_connection,
        )

    @property
    def logset_hash(self) -> str:
        return self._logset_hash

    @logset_hash.setter
    def logset_hash(self, value: str) -> None:
        if self._logset_hash and value != self._logset_hash:
            raise RunStateError(
                "Logset hash is already resolved for this run",
                details={"current": self._logset_hash, "attempted": value},
            )
        self._logset_hash = value
        self.database_name = logset_database_name(value)

    @property
    def reused_existing(self) -> bool:
        return self._reused_existing

    def mark_reused_existing(self) -> None:
        self._reused_existing = True

    @property
    def will_drop_store(self) -> bool:
        return self.capabilities.drop_requested and not self._reused_existing

    @property
    def state(self) -> RunState:
        return self.transitions[-1]

    def advance(self, state: RunState) -> None:
        self.transitions.append(state)

    def require_connection(self) -> StoreConnectionInfo:
        if self.store_connection is None:
            raise RunStateError("No store connection is configured for this run")
        return self.store_connection
