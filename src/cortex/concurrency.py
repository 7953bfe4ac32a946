"""Cooperative cancellation for generation runs."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Cooperative cancellation token backed by ``asyncio.Event``.

    Cancelling a token stops a run from scheduling further attempts. A call
    that is already in flight is allowed to finish; its result is discarded.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("generation run cancelled")
