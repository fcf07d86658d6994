"""Cancellation tokens for logical fetches."""

from __future__ import annotations

import asyncio

from storefront.exceptions import FetchCancelledError


class CancellationToken:
    """Handle signalling that an in-flight fetch's result must be discarded.

    A token is bound to the task running the fetch; cancelling the token
    cancels that task, which aborts any HTTP exchange it is awaiting.
    """

    def __init__(self, label: str | None = None) -> None:
        self.label = label
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called."""
        return self._cancelled

    def bind(self, task: asyncio.Task) -> None:
        """Attach the task doing the work. Cancels it at once if already cancelled."""
        self._task = task
        if self._cancelled and not task.done():
            task.cancel()

    def cancel(self) -> bool:
        """Cancel the token and its task.

        Returns:
            True if this call cancelled the token, False if it already was.
        """
        if self._cancelled:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    def raise_if_cancelled(self) -> None:
        """Raise FetchCancelledError when the token was cancelled."""
        if self._cancelled:
            raise FetchCancelledError(
                "Fetch superseded by a newer call",
                context={"call": self.label} if self.label else None,
            )

    def __repr__(self) -> str:
        return f"CancellationToken(label={self.label!r}, cancelled={self._cancelled})"
