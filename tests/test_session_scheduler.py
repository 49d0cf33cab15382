"""
Tests for the asyncio-backed scheduler.
"""

import asyncio
from unittest.mock import patch

from rainbow.sdk.session.scheduler import AsyncioScheduler


class TestAsyncioScheduler:
    async def test_callback_runs_after_delay(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.call_later(0.01, callback)

        await asyncio.wait_for(fired.wait(), timeout=1)

    async def test_negative_delay_runs_soon(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.call_later(-100, callback)

        await asyncio.wait_for(fired.wait(), timeout=1)

    async def test_cancelled_callback_never_runs(self):
        scheduler = AsyncioScheduler()
        calls = []

        async def callback():
            calls.append(1)

        handle = scheduler.call_later(0.01, callback)
        handle.cancel()
        await asyncio.sleep(0.05)

        assert handle.cancelled
        assert calls == []

    async def test_failing_callback_is_reported(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def callback():
            done.set()
            raise RuntimeError("boom")

        with patch("rainbow.sdk.session.scheduler.sentry_sdk") as sentry:
            scheduler.call_later(0, callback)
            await asyncio.wait_for(done.wait(), timeout=1)
            await asyncio.sleep(0)

        sentry.capture_exception.assert_called_once()

    async def test_now_is_wall_clock(self):
        with patch("rainbow.sdk.session.scheduler.time.time", return_value=1234.5):
            assert AsyncioScheduler().now() == 1234.5
