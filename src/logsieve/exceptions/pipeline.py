"""Pipeline exceptions: identity, stage failures, business rules, cleanup."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .base import LogsieveError
from .taxonomy import ErrorCode


class FatalIdentityError(LogsieveError):
    """Raised when the logset fingerprint cannot be computed."""

    code = ErrorCode.LS100

    def __init__(self, target: str, reason: str):
        super().__init__(
            f"Unable to determine logset hash for {target}",
            details={"target": target, "reason": reason},
        )
        self.target = target
        self.reason = reason


class ProcessingError(LogsieveError):
    """Raised when a processed logset violates a business rule."""

    code = ErrorCode.LS500


class StageFailure(LogsieveError):
    """Base class for extraction and ingestion failures. Never retried."""

    stage: str = "unknown"


class ExtractionError(StageFailure):
    """Raised when the logset cannot be materialized locally."""

    code = ErrorCode.LS300
    stage = "extraction"

    def __init__(self, target: str, reason: str, code: Optional[ErrorCode] = None):
        super().__init__(
            f"Failed to extract logset {target}",
            details={"target": target, "reason": reason},
            code=code,
        )
        self.target = target
        self.reason = reason


class IngestionError(StageFailure):
    """Raised when parsed records cannot be written to the store."""

    code = ErrorCode.LS400
    stage = "ingestion"

    def __init__(
        self,
        database_name: str,
        reason: str,
        filepath: Optional[Path] = None,
        code: Optional[ErrorCode] = None,
    ):
        details = {"database": database_name, "reason": reason}
        if filepath is not None:
            details["filepath"] = str(filepath)
        super().__init__(f"Failed to ingest logset into {database_name}", details=details, code=code)
        self.database_name = database_name
        self.reason = reason
        self.filepath = filepath


class StoreProcessError(LogsieveError):
    """Raised when the local store process cannot be started."""

    code = ErrorCode.LS200

    def __init__(self, port: int, reason: str, code: Optional[ErrorCode] = None):
        super().__init__(
            f"Local store on port {port} unavailable",
            details={"port": str(port), "reason": reason},
            code=code,
        )
        self.port = port
        self.reason = reason


class RunCancelledError(LogsieveError):
    """Raised when a cancellation request is observed between stages."""

    code = ErrorCode.LS801

    def __init__(self, next_stage: str):
        super().__init__(f"Run cancelled before {next_stage}", details={"stage": next_stage})
        self.next_stage = next_stage


class RunStateError(LogsieveError):
    """Raised when a run context invariant would be violated."""

    code = ErrorCode.LS802


@dataclass(frozen=True)
class CleanupFailure:
    """A failure observed during teardown. Logged and returned, never raised.

    Attributes:
        step: Teardown step that failed ("drop_database", "delete_metadata", ...)
        code: Structured error code for the step
        error: The underlying exception
    """

    step: str
    code: ErrorCode
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)

    def to_json(self) -> dict[str, Any]:
        return {
            "error_code": self.code.value,
            "step": self.step,
            "error_type": type(self.error).__name__,
            "message": self.message,
        }
