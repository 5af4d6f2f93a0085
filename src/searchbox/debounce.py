"""Cancellable debounce timer for async callbacks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class Debouncer:
    """Runs *callback* once a quiet period has elapsed since the last ``arm()``.

    ``cancel()`` only stops the pending timer. A callback that has already
    started keeps running to completion.

    Args:
        delay: Quiet period in seconds.
        callback: Async function called with no arguments.
    """

    def __init__(self, delay: float, callback: Callback) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """True while a timer is armed and has not fired yet."""
        return self._handle is not None

    def arm(self) -> None:
        """Cancel any pending timer and start a new quiet period."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Debounced callback failed")

    async def fire_now(self) -> None:
        """Skip the quiet period: cancel the timer and run the callback now."""
        self.cancel()
        await self._run()

    async def drain(self) -> None:
        """Wait for callbacks already fired by the timer to finish."""
        while self._tasks:
            tasks = list(self._tasks)
            await asyncio.gather(*tasks)
            self._tasks.difference_update(tasks)
