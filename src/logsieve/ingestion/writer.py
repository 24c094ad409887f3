"""Parse a materialized logset into its store database.

Schema creation is idempotent; record insertion is not. Calling
``process_logset`` twice for one logset duplicates its records, which is why
the orchestrator skips ingestion for already-processed logsets and calls
``reset_logset`` before re-ingesting one that already has a database.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..config import LogsieveConfig
from ..exceptions import ErrorCode, IngestionError
from ..logging_config import get_logger
from ..models import RunContext, RunRequest
from ..store.client import StoreClient
from ..store.metadata import LogsetMetadataWriter
from .parsers import LogParser, ParserRegistry

logger = get_logger(__name__)

_INSERT_SQL = """
    INSERT INTO records (
        collection, source_file, line_number, timestamp, level, message, payload
    ) VALUES (?, ?, ?, ?, ?, ?, ?)
"""


class StoreWriter:
    """Writes parsed log records into the run's database."""

    def __init__(
        self,
        config: LogsieveConfig,
        metadata_writer: Optional[LogsetMetadataWriter] = None,
        registry: Optional[ParserRegistry] = None,
    ) -> None:
        self.config = config
        self.metadata_writer = metadata_writer or LogsetMetadataWriter()
        self.registry = registry or ParserRegistry()

    def process_logset(self, request: RunRequest, context: RunContext) -> int:
        """Create schema, parse every supported file, record completion.

        Returns:
            Number of records written.

        Raises:
            IngestionError: If there is no payload or a write fails
        """
        root = context.root_log_directory
        if root is None or not root.is_dir():
            raise IngestionError(
                context.database_name or str(request.target),
                "no extracted logset payload to parse",
                code=ErrorCode.LS401,
            )

        client = StoreClient(context.require_connection())
        total = 0
        current: Optional[Path] = None
        try:
            self.metadata_writer.write_processing_started(request, context)
            with client.open_database(context.database_name, create=True) as db:
                for path, source_file, parser in self._plan(root):
                    current = path
                    written = self._write_file(db.conn, parser, path, source_file)
                    logger.debug("Parsed %d record(s) from %s", written, source_file)
                    total += written
            current = None
            self.metadata_writer.write_processing_finished(request, context, total)
        except (sqlite3.Error, OSError) as e:
            raise IngestionError(context.database_name, str(e), filepath=current) from e

        logger.info("Parsed %d record(s) into database %s.", total, context.database_name)
        return total

    def reset_logset(self, request: RunRequest, context: RunContext) -> int:
        """Delete records left by an earlier or interrupted ingestion.

        Returns:
            Number of records removed.

        Raises:
            IngestionError: If the existing database cannot be cleared
        """
        client = StoreClient(context.require_connection())
        if not client.database_exists(context.database_name):
            return 0
        try:
            with client.open_database(context.database_name) as db:
                removed = db.clear_records()
        except sqlite3.Error as e:
            raise IngestionError(context.database_name, f"cannot reset database: {e}") from e
        logger.info("Cleared %d stale record(s) from database %s.", removed, context.database_name)
        return removed

    def _plan(self, root: Path) -> Iterator[Tuple[Path, str, LogParser]]:
        """Supported files under ``root`` in a stable order."""
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            parser = self.registry.parser_for(path)
            if parser is None:
                logger.debug("No parser for %s, skipping", path)
                continue
            yield path, path.relative_to(root).as_posix(), parser

    def _write_file(
        self, conn: sqlite3.Connection, parser: LogParser, path: Path, source_file: str
    ) -> int:
        batch: List[tuple] = []
        written = 0
        for record in parser.parse(path, source_file):
            batch.append(record.as_row())
            if len(batch) >= self.config.batch_size:
                conn.executemany(_INSERT_SQL, batch)
                written += len(batch)
                batch = []
        if batch:
            conn.executemany(_INSERT_SQL, batch)
            written += len(batch)
        conn.commit()
        return written
