"""Master metadata index: which logsets have been processed, and how far.

One row per fingerprint. The row is upserted when ingestion starts
(``in_flight``) and again when it finishes (``processed``); concurrent runs on
the same fingerprint therefore resolve last-writer-wins.
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from ..logging_config import get_logger
from ..models import LogsetStatus, RunContext, RunRequest
from .client import StoreClient

logger = get_logger(__name__)

STATE_IN_FLIGHT = "in_flight"
STATE_PROCESSED = "processed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MetadataIndex:
    """Manages the ``logsieve_metadata.db`` SQLite database.

    Usage::

        with MetadataIndex(client) as index:
            index.get_record(logset_hash)
    """

    def __init__(self, client: StoreClient, create: bool = True) -> None:
        self.client = client
        self.create = create
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("MetadataIndex is not connected. Use as context manager or call connect().")
        return self._conn

    def exists(self) -> bool:
        return self.client.metadata_path.exists()

    def has_table(self) -> bool:
        row = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = 'logsets'"
        ).fetchone()
        return row is not None

    def connect(self) -> sqlite3.Connection:
        path = self.client.metadata_path
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path))
        conn.row_factory = sqlite3.Row
        self._conn = conn
        if self.create:
            self._migrate()
        return conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "MetadataIndex":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _migrate(self) -> None:
        """Idempotently create the metadata table."""
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logsets (
                logset_hash   TEXT    PRIMARY KEY,
                database_name TEXT    NOT NULL,
                target        TEXT    NOT NULL DEFAULT '',
                run_id        TEXT    NOT NULL DEFAULT '',
                state         TEXT    NOT NULL,
                record_count  INTEGER NOT NULL DEFAULT 0,
                created_at    TEXT    NOT NULL,
                updated_at    TEXT    NOT NULL
            )
            """
        )
        self.conn.commit()

    # ── records ───────────────────────────────────────────────────

    def get_record(self, logset_hash: str) -> Optional[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM logsets WHERE logset_hash = ?", (logset_hash,)
        ).fetchone()

    def upsert(
        self,
        logset_hash: str,
        database_name: str,
        state: str,
        target: str = "",
        run_id: str = "",
        record_count: int = 0,
    ) -> None:
        now = _now()
        self.conn.execute(
            """
            INSERT INTO logsets (
                logset_hash, database_name, target, run_id, state,
                record_count, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(logset_hash) DO UPDATE SET
                database_name = excluded.database_name,
                target        = CASE WHEN excluded.target != '' THEN excluded.target ELSE target END,
                run_id        = CASE WHEN excluded.run_id != '' THEN excluded.run_id ELSE run_id END,
                state         = excluded.state,
                record_count  = excluded.record_count,
                updated_at    = excluded.updated_at
            """,
            (logset_hash, database_name, target, run_id, state, record_count, now, now),
        )
        self.conn.commit()

    def delete(self, logset_hash: str) -> bool:
        cur = self.conn.execute("DELETE FROM logsets WHERE logset_hash = ?", (logset_hash,))
        self.conn.commit()
        return cur.rowcount > 0


class LogsetMetadataWriter:
    """Writes processing-state transitions into the master metadata index."""

    def _index(self, context: RunContext) -> MetadataIndex:
        return MetadataIndex(StoreClient(context.require_connection()))

    def write_processing_started(self, request: RunRequest, context: RunContext) -> None:
        with self._index(context) as index:
            index.upsert(
                context.logset_hash,
                context.database_name,
                STATE_IN_FLIGHT,
                target=str(request.target),
                run_id=request.run_id,
            )

    def write_processing_finished(
        self, request: RunRequest, context: RunContext, record_count: int
    ) -> None:
        with self._index(context) as index:
            index.upsert(
                context.logset_hash,
                context.database_name,
                STATE_PROCESSED,
                run_id=request.run_id,
                record_count=record_count,
            )

    def delete_master_record(self, request: RunRequest, context: RunContext) -> bool:
        """Remove this run's logset from the index. Returns True if a row was removed."""
        with self._index(context) as index:
            removed = index.delete(context.logset_hash)
        if removed:
            logger.debug("Removed metadata record for logset %s", context.logset_hash)
        return removed


class LogsetStatusChecker:
    """Answers whether a fingerprint has already been fully processed."""

    def get_status(self, request: RunRequest, context: RunContext) -> LogsetStatus:
        """Query the metadata index. Never writes."""
        client = StoreClient(context.require_connection())
        index = MetadataIndex(client, create=False)
        if not index.exists():
            return LogsetStatus.NON_EXISTENT

        with index:
            record = index.get_record(context.logset_hash) if index.has_table() else None

        if record is None:
            return LogsetStatus.NON_EXISTENT
        if record["state"] == STATE_PROCESSED and client.database_exists(record["database_name"]):
            return LogsetStatus.PROCESSED
        return LogsetStatus.INCOMPLETE
