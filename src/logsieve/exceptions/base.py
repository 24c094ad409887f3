"""Base exception for logsieve."""

from typing import Any, Dict, Optional

from .taxonomy import ErrorCode


class LogsieveError(Exception):
    """Base exception for all logsieve errors.

    Attributes:
        message: Human-readable error description
        code: Structured error code for categorization
        details: Additional context (paths, database names, ...)
        fatal: Whether the error aborts the run it was raised in
    """

    code: ErrorCode = ErrorCode.LS800
    fatal: bool = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, str]] = None,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_json(self) -> Dict[str, Any]:
        """Structured logging format."""
        return {
            "error_code": self.code.value,
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "fatal": self.fatal,
        }
