"""Post-ingestion validation: a logset database must hold at least one record."""

from __future__ import annotations

from .exceptions import ProcessingError
from .logging_config import get_logger
from .models import RunContext, RunRequest
from .protocols import Validator
from .store.client import StoreClient

logger = get_logger(__name__)


class LogsetValidator:
    """Counts records in the run's database."""

    def count_records(self, context: RunContext) -> int:
        client = StoreClient(context.require_connection())
        if not client.database_exists(context.database_name):
            return 0
        with client.open_database(context.database_name) as db:
            return db.count_records()

    def contains_records(self, request: RunRequest, context: RunContext) -> bool:
        count = self.count_records(context)
        logger.debug("Database %s holds %d record(s)", context.database_name, count)
        return count > 0


def assert_non_empty(validator: Validator, request: RunRequest, context: RunContext) -> None:
    """Raise if the run's database contains no records.

    Raises:
        ProcessingError: If the record count is zero
    """
    if not validator.contains_records(request, context):
        raise ProcessingError(
            f"Database {context.database_name} contains no valid log data",
            details={"database": context.database_name},
        )
