"""Best-effort run teardown.

Order:
1. If the run asked to drop its data and did not reuse an existing logset:
   drop the logset database, then remove its metadata record.
2. Always: remove the run's temp directory.

A failing step is recorded as a ``CleanupFailure`` and logged as a warning.
A failed drop skips the metadata removal; temp cleanup always runs and
nothing is raised.
"""

from __future__ import annotations

from typing import Callable, List

from .exceptions import CleanupFailure, ErrorCode
from .logging_config import get_logger
from .models import RunContext, RunRequest, RunState
from .protocols import DatabaseAdmin, Extractor, MetadataWriter
from .store.client import StoreClient

logger = get_logger(__name__)


def log_cleanup_failure(failure: CleanupFailure) -> None:
    logger.warning(
        "[%s] Cleanup step %s failed: %s",
        failure.code.value,
        failure.step,
        failure.message,
        extra={"cleanup_failure": failure.to_json()},
    )


class TeardownCoordinator:
    def __init__(
        self, extractor: Extractor, admin: DatabaseAdmin, metadata_writer: MetadataWriter
    ) -> None:
        self.extractor = extractor
        self.admin = admin
        self.metadata_writer = metadata_writer

    def teardown(self, request: RunRequest, context: RunContext) -> List[CleanupFailure]:
        failures: List[CleanupFailure] = []

        if context.will_drop_store:
            # A database that could not be dropped keeps its metadata record
            if self._attempt(failures, "drop_database", ErrorCode.LS900, lambda: self._drop(context)):
                self._attempt(
                    failures,
                    "delete_metadata",
                    ErrorCode.LS901,
                    lambda: self.metadata_writer.delete_master_record(request, context),
                )
        elif context.capabilities.drop_requested:
            logger.info("Retaining database %s: it was reused from an earlier run", context.database_name)

        self._attempt(
            failures,
            "cleanup_temp",
            ErrorCode.LS902,
            lambda: self.extractor.cleanup_run(request.run_id),
        )

        context.advance(RunState.TORN_DOWN)
        return failures

    def _drop(self, context: RunContext) -> None:
        if not context.database_name:
            return
        client = StoreClient(context.require_connection())
        if self.admin.drop_database(client, context.database_name):
            logger.info("Dropped database %s", context.database_name)

    @staticmethod
    def _attempt(
        failures: List[CleanupFailure], step: str, code: ErrorCode, action: Callable[[], object]
    ) -> bool:
        try:
            action()
        except Exception as e:  # teardown never propagates
            failure = CleanupFailure(step, code, e)
            log_cleanup_failure(failure)
            failures.append(failure)
            return False
        return True
