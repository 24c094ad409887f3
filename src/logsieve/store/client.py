"""SQLite-backed structured store: one database file per logset.

Layout under ``StoreConnectionInfo.data_dir``::

    <data_dir>/
        logsieve_metadata.db      master metadata index
        <database_name>.db        parsed records of one logset
"""

import sqlite3
from pathlib import Path
from typing import List, Optional

from ..config import StoreConnectionInfo
from ..logging_config import get_logger

logger = get_logger(__name__)

MASTER_METADATA_DB = "logsieve_metadata"

# Current schema version (bump when tables change).
_SCHEMA_VERSION = 1

_DB_SUFFIX = ".db"
_SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


class LogsetDatabase:
    """Manages one logset's SQLite database.

    Usage::

        with client.open_database("abc123", create=True) as db:
            db.conn.executemany(...)
    """

    def __init__(self, path: Path, create: bool = False) -> None:
        self.path = path
        self.create = create
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("LogsetDatabase is not connected. Use as context manager or call connect().")
        return self._conn

    # ── lifecycle ─────────────────────────────────────────────────

    def connect(self) -> sqlite3.Connection:
        """Open the database, creating it and its schema if ``create`` is set."""
        if not self.create and not self.path.exists():
            raise FileNotFoundError(f"No such logset database: {self.path}")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        self._conn = conn
        if self.create:
            ensure_schema(conn)
        logger.debug("Logset DB connected at %s", self.path)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "LogsetDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── queries ───────────────────────────────────────────────────

    def count_records(self) -> int:
        if not _has_table(self.conn, "records"):
            return 0
        row = self.conn.execute("SELECT COUNT(*) AS n FROM records").fetchone()
        return int(row["n"])

    def clear_records(self) -> int:
        """Delete every record, keeping the schema. Returns rows removed."""
        if not _has_table(self.conn, "records"):
            return 0
        removed = self.count_records()
        self.conn.execute("DELETE FROM records")
        self.conn.commit()
        return removed


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Idempotently create the record tables and indexes."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL
        )
        """
    )
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (_SCHEMA_VERSION,))

    # ── records ──────────────────────────────────────────────
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS records (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            collection  TEXT    NOT NULL,
            source_file TEXT    NOT NULL,
            line_number INTEGER NOT NULL,
            timestamp   TEXT,
            level       TEXT,
            message     TEXT    NOT NULL,
            payload     TEXT
        )
        """
    )

    # ── indexes ──────────────────────────────────────────────
    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_collection ON records(collection)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_level ON records(level)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_timestamp ON records(timestamp)")

    conn.commit()


def _has_table(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name = ?", (name,)
    ).fetchone()
    return row is not None


class StoreClient:
    """Entry point to the store described by a ``StoreConnectionInfo``."""

    def __init__(self, connection_info: StoreConnectionInfo) -> None:
        self.connection_info = connection_info
        self.data_dir: Path = connection_info.data_path

    def database_path(self, name: str) -> Path:
        return self.data_dir / f"{name}{_DB_SUFFIX}"

    def database_exists(self, name: str) -> bool:
        return self.database_path(name).exists()

    def list_database_names(self) -> List[str]:
        """Logset databases present in the store, excluding the metadata index."""
        if not self.data_dir.is_dir():
            return []
        return sorted(
            p.stem
            for p in self.data_dir.glob(f"*{_DB_SUFFIX}")
            if p.stem != MASTER_METADATA_DB
        )

    def open_database(self, name: str, create: bool = False) -> LogsetDatabase:
        return LogsetDatabase(self.database_path(name), create=create)

    @property
    def metadata_path(self) -> Path:
        return self.database_path(MASTER_METADATA_DB)


class StoreAdmin:
    """Destructive store operations, used only by teardown."""

    def drop_database(self, client: StoreClient, name: str) -> bool:
        """Delete a logset database and its SQLite sidecar files.

        Returns True if the database existed.
        """
        path = client.database_path(name)
        existed = path.exists()
        for candidate in [path] + [path.with_name(path.name + s) for s in _SIDECAR_SUFFIXES]:
            try:
                candidate.unlink()
            except FileNotFoundError:
                pass
        if existed:
            logger.debug("Dropped logset database %s", path)
        return existed
