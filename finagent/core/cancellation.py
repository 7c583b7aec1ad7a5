"""Cooperative cancellation for agent and workflow runs."""

from __future__ import annotations

import threading
from typing import Optional

from .errors import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag shared between a caller and a run.

    Agents check the token before each model call, after each streamed
    fragment and before each tool invocation. One token is passed down to
    every stage of a workflow, so cancelling it stops the running stage and
    every stage after it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Operation cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "Operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
