"""Runs the selected analysis plugins against a logset database."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..config import LogsieveConfig
from ..exceptions import ErrorCode
from ..logging_config import get_logger
from ..models import PluginOutcome, RunContext, RunRequest
from ..store.client import StoreClient
from .base import AnalysisPlugin, PluginContext, PluginResult
from .output import PluginOutputStore

if TYPE_CHECKING:
    from ..publishing import ReportPublisher

logger = get_logger(__name__)


class PluginExecutor:
    """Executes plugins one by one; a failing plugin never stops the others."""

    def __init__(self, config: LogsieveConfig, publisher: Optional["ReportPublisher"] = None) -> None:
        self.config = config
        self.publisher = publisher

    def output_location(self, run_id: str) -> Path:
        return self.config.output_path / run_id

    def execute_plugins(self, request: RunRequest, context: RunContext) -> List[PluginOutcome]:
        plugins = sorted(context.plugin_types_to_execute, key=lambda p: p.name)
        run_dir = self.output_location(request.run_id)
        client = StoreClient(context.require_connection())

        outcomes: List[PluginOutcome] = []
        with client.open_database(context.database_name) as db:
            for plugin_type in plugins:
                outcome = self._run_one(plugin_type, request, context, db.conn, run_dir / plugin_type.name)
                outcomes.append(outcome)

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info("Analysis finished: %d/%d plugin(s) succeeded", succeeded, len(outcomes))

        if context.capabilities.publishes_reports and self.publisher is not None:
            context.published_reports.extend(self.publisher.publish(request, context, outcomes))
        return outcomes

    def _run_one(
        self,
        plugin_type: type,
        request: RunRequest,
        context: RunContext,
        conn: sqlite3.Connection,
        output_dir: Path,
    ) -> PluginOutcome:
        name = plugin_type.name
        logger.info("Running plugin %s", name)
        start = time.perf_counter()
        try:
            plugin: AnalysisPlugin = plugin_type()
            result: PluginResult = plugin.execute(PluginContext(request, context, conn, output_dir))
            self._store_backing_rows(name, request, context, result)
        except Exception as e:  # plugin failures are isolated and recorded
            elapsed = time.perf_counter() - start
            logger.error("[%s] Plugin %s failed: %s", ErrorCode.LS600.value, name, e)
            logger.debug("Plugin %s traceback", name, exc_info=True)
            return PluginOutcome(name, success=False, error=str(e), elapsed_seconds=elapsed)

        elapsed = time.perf_counter() - start
        logger.debug("Plugin %s produced %d artifact(s) in %.2fs", name, len(result.artifacts), elapsed)
        return PluginOutcome(
            name,
            success=True,
            artifacts=tuple(result.artifacts),
            elapsed_seconds=elapsed,
        )

    def _store_backing_rows(
        self, name: str, request: RunRequest, context: RunContext, result: PluginResult
    ) -> None:
        if not result.backing_rows:
            return
        with PluginOutputStore(self.config.plugin_output_database) as store:
            store.write_rows(name, request.run_id, context.logset_hash, result.backing_rows)
