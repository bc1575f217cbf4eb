"""Cooperative cancellation shared by every suspension point of a run."""

from __future__ import annotations

import asyncio


class CancelToken:
    """Flag checked between work items; ``sleep`` wakes early once cancelled.

    ``cancel`` only flips a flag so it is safe to call from a signal handler or
    another thread; sleepers notice it on their next poll.
    """

    _POLL_SECONDS = 0.1

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns False if cancelled before the end."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self._cancelled

        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while not self._cancelled:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return True
            await asyncio.sleep(min(remaining, self._POLL_SECONDS))
        return False
