"""Cooperative cancellation for in-flight checkout requests."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cancellation scope for a single activation of a view.

    Work started for an activation is bound to its token. Cancelling the
    token cancels bound asyncio tasks (which aborts their httpx requests)
    and lets callers check ``cancelled`` before applying any result.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Cancel the scope. Calling more than once is harmless."""
        if self._cancelled:
            return
        self._cancelled = True
        logger.debug("Cancellation token %s cancelled", self.label or id(self))
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def bind(self, task: "asyncio.Task[Any]") -> "asyncio.Task[Any]":
        """Cancel ``task`` when this token is cancelled."""
        self.add_callback(task.cancel)
        return task

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken {self.label or id(self)} {state}>"
