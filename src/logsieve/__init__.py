"""
logsieve - log bundle ingestion and analysis.

Fingerprints a log bundle, parses it into a per-logset store database (reusing
earlier work for bundles already processed), runs analysis plugins over it
and cleans up after itself, optionally inside a run-managed local store.
"""

__version__ = "0.1.0"

from .config import LogsieveConfig, load_config
from .models import LogsetStatus, RunContext, RunRequest
from .orchestrator import PIPELINE_STAGES, Collaborators, RunOrchestrator, RunResult

__all__ = [
    "LogsieveConfig",
    "load_config",
    "LogsetStatus",
    "RunContext",
    "RunRequest",
    "PIPELINE_STAGES",
    "Collaborators",
    "RunOrchestrator",
    "RunResult",
]
