"""Protocol classes for the collaborators the orchestrator drives.

Stage collaborators take ``(request, context)``: the request is immutable, the
context carries what earlier stages resolved (fingerprint, connection, ...).
"""

from pathlib import Path
from typing import FrozenSet, List, Optional, Protocol

from .config import StoreConnectionInfo
from .identity import IdentityResolution
from .models import LogsetStatus, PluginOutcome, RunContext, RunRequest, RunTarget
from .store.client import StoreClient


class PluginSelector(Protocol):
    """Resolves which analysis plugins a run executes."""

    def load_plugins(self, request: RunRequest) -> FrozenSet[type]: ...


class IdentityResolver(Protocol):
    """Computes or passes through the logset fingerprint. Raises FatalIdentityError."""

    def resolve(self, target: RunTarget) -> IdentityResolution: ...


class LocalStoreManager(Protocol):
    """Owns the local store process. ``stop()`` is idempotent."""

    def start(self) -> StoreConnectionInfo: ...

    def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    def connection_info(self) -> StoreConnectionInfo: ...


class Extractor(Protocol):
    """Materializes the logset; owns the run-scoped temp directory."""

    def process(self, request: RunRequest, context: RunContext) -> Optional[Path]: ...

    def cleanup_run(self, run_id: str) -> bool: ...

    def cleanup_all(self) -> int: ...


class StatusChecker(Protocol):
    """Read-only query against the metadata index."""

    def get_status(self, request: RunRequest, context: RunContext) -> LogsetStatus: ...


class LogsetWriter(Protocol):
    """Parses the materialized logset into the store. Not idempotent for data."""

    def process_logset(self, request: RunRequest, context: RunContext) -> int: ...

    def reset_logset(self, request: RunRequest, context: RunContext) -> int: ...


class Validator(Protocol):
    def contains_records(self, request: RunRequest, context: RunContext) -> bool: ...


class AnalysisExecutor(Protocol):
    """Runs the selected plugins; one failure never stops the others."""

    def execute_plugins(self, request: RunRequest, context: RunContext) -> List[PluginOutcome]: ...

    def output_location(self, run_id: str) -> Path: ...


class DatabaseAdmin(Protocol):
    """Destructive, teardown-only."""

    def drop_database(self, client: StoreClient, name: str) -> bool: ...


class MetadataWriter(Protocol):
    """Destructive, teardown-only."""

    def delete_master_record(self, request: RunRequest, context: RunContext) -> bool: ...
