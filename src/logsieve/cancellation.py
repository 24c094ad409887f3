"""Cooperative cancellation, observed by the orchestrator between stages."""

import threading

from .exceptions import RunCancelledError


class CancellationToken:
    """Thread-safe cancellation flag.

    Another thread (or a signal handler) calls ``cancel()``; the orchestrator
    calls ``raise_if_cancelled()`` before each stage. A stage in progress is
    never interrupted.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self, next_stage: str) -> None:
        if self._event.is_set():
            raise RunCancelledError(next_stage)
