"""Cooperative cancellation for node attempts.

A token is handed to every attempt of a node's work item. When the attempt
times out the token is cancelled; the work item is expected to check it
(``token.cancelled`` / ``token.raise_if_cancelled()``) and stop on its own.

Note: Python threads cannot be forcefully killed. A plain (thread-run) work
item keeps running after a timeout until it notices the token; its result is
discarded.
"""

from __future__ import annotations

import asyncio
import threading

from dagflow.core.models import DagError


class NodeCancelledError(DagError):
    """Raised by ``CancellationToken.raise_if_cancelled``."""

    pass


class CancellationToken:
    """Thread-safe, one-shot cancellation signal."""

    # Seconds between event checks in sleep()
    POLL_INTERVAL = 0.01

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise NodeCancelledError(self._reason or "cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        """Block the calling thread until cancelled or ``timeout`` elapses."""
        return self._event.wait(timeout)

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early on cancellation.

        The token is backed by a ``threading.Event`` so it can be cancelled
        from any thread; this coroutine polls it, so a cancel is noticed
        within ``POLL_INTERVAL`` (10ms) rather than immediately.

        Returns True if the token was cancelled.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while not self._event.is_set():
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(remaining, self.POLL_INTERVAL))
        return self._event.is_set()

    def __repr__(self) -> str:
        state = f"cancelled ({self._reason})" if self.cancelled else "active"
        return f"<CancellationToken {state}>"
