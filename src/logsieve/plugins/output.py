"""Plugin backing-data database: one table per plugin, rows tagged by run."""

import re
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

_NON_IDENT = re.compile(r"[^a-z0-9_]+")


def table_name(plugin_name: str) -> str:
    return "plugin_" + _NON_IDENT.sub("_", plugin_name.lower()).strip("_")


class PluginOutputStore:
    """Manages the plugin output SQLite database.

    Usage::

        with PluginOutputStore(path) as store:
            store.write_rows("level_summary", run_id, logset_hash, rows)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("PluginOutputStore is not connected. Use as context manager or call connect().")
        return self._conn

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        self._conn = conn
        return conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "PluginOutputStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def write_rows(
        self, plugin_name: str, run_id: str, logset_hash: str, rows: List[Dict[str, Any]]
    ) -> int:
        """Append ``rows`` to the plugin's table, creating it from the first row's keys."""
        if not rows:
            return 0
        table = table_name(plugin_name)
        columns = list(rows[0].keys())
        column_defs = ", ".join(f'"{c}"' for c in columns)
        self.conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{table}" ('
            f'run_id TEXT NOT NULL, logset_hash TEXT NOT NULL, {column_defs})'
        )
        placeholders = ", ".join("?" for _ in range(len(columns) + 2))
        quoted = ", ".join(f'"{c}"' for c in columns)
        self.conn.executemany(
            f'INSERT INTO "{table}" (run_id, logset_hash, {quoted}) VALUES ({placeholders})',
            [(run_id, logset_hash, *(row.get(c) for c in columns)) for row in rows],
        )
        self.conn.commit()
        logger.debug("Wrote %d backing row(s) to %s", len(rows), table)
        return len(rows)
