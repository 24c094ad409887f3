"""Analysis plugin contract.

A plugin reads the run's logset database and produces report artifacts
(files under the run's output directory) plus optional backing rows that the
executor persists to the plugin output database.
"""

from __future__ import annotations

import csv
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..models import RunContext, RunRequest


@dataclass
class PluginContext:
    """Everything a plugin may touch during one execution."""

    request: RunRequest
    run_context: RunContext
    conn: sqlite3.Connection
    output_dir: Path

    @property
    def logset_hash(self) -> str:
        return self.run_context.logset_hash

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return self.conn.execute(sql, params).fetchall()

    def write_csv(self, filename: str, rows: List[Dict[str, Any]], fieldnames: List[str]) -> Path:
        """Write ``rows`` to ``<output_dir>/<filename>`` and return the path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        with open(path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
        return path


@dataclass
class PluginResult:
    artifacts: List[Path] = field(default_factory=list)
    backing_rows: List[Dict[str, Any]] = field(default_factory=list)


class AnalysisPlugin(ABC):
    """Base class for analysis plugins.

    Subclasses set ``name`` (unique, used for selection) and
    ``description``; ``default`` marks plugins run when none are requested.
    """

    name: str = ""
    description: str = ""
    default: bool = True

    @abstractmethod
    def execute(self, ctx: PluginContext) -> PluginResult:
        """Analyze the logset; raise on failure."""
