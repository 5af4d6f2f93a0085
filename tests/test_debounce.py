"""Tests for the cancellable debounce timer."""

import asyncio
from unittest.mock import AsyncMock

from src.searchbox.debounce import Debouncer

DELAY = 0.02


async def test_fires_once_after_quiet_period() -> None:
    callback = AsyncMock()
    debouncer = Debouncer(DELAY, callback)

    for _ in range(5):
        debouncer.arm()
    assert debouncer.pending

    await asyncio.sleep(DELAY * 5)
    await debouncer.drain()

    callback.assert_awaited_once()
    assert not debouncer.pending


async def test_rearm_restarts_timer() -> None:
    callback = AsyncMock()
    debouncer = Debouncer(DELAY * 3, callback)

    debouncer.arm()
    await asyncio.sleep(DELAY * 2)
    debouncer.arm()
    await asyncio.sleep(DELAY * 2)
    callback.assert_not_awaited()

    await asyncio.sleep(DELAY * 3)
    await debouncer.drain()
    callback.assert_awaited_once()


async def test_cancel_prevents_fire() -> None:
    callback = AsyncMock()
    debouncer = Debouncer(DELAY, callback)

    debouncer.arm()
    debouncer.cancel()
    await asyncio.sleep(DELAY * 4)

    callback.assert_not_awaited()
    assert not debouncer.pending


async def test_fire_now_skips_timer() -> None:
    callback = AsyncMock()
    debouncer = Debouncer(10, callback)

    debouncer.arm()
    await debouncer.fire_now()

    callback.assert_awaited_once()
    assert not debouncer.pending


async def test_cancel_does_not_stop_running_callback() -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def slow() -> None:
        started.set()
        await release.wait()
        finished.append(True)

    debouncer = Debouncer(0, slow)
    debouncer.arm()
    await started.wait()

    debouncer.cancel()
    release.set()
    await debouncer.drain()
    assert finished == [True]


async def test_callback_errors_are_logged_not_raised() -> None:
    callback = AsyncMock(side_effect=RuntimeError("boom"))
    debouncer = Debouncer(DELAY, callback)

    await debouncer.fire_now()
    callback.assert_awaited_once()
