"""
Unit tests for the session Notifier.
"""

import asyncio
from unittest.mock import patch

from rainbow.sdk.session.events import Notifier, SessionEvent


class TestNotifier:
    def test_listeners_receive_event_and_payload(self):
        notifier = Notifier()
        received = []
        notifier.subscribe(SessionEvent.RECONNECT_FAILED, lambda e, p: received.append((e, p)))

        notifier.emit(SessionEvent.RECONNECT_FAILED, 3)

        assert received == [(SessionEvent.RECONNECT_FAILED, 3)]

    def test_only_matching_event_is_delivered(self):
        notifier = Notifier()
        received = []
        notifier.subscribe(SessionEvent.TOKEN_EXPIRED, lambda e, p: received.append(e))

        notifier.emit(SessionEvent.TOKEN_RENEWED, None)

        assert received == []

    def test_subscribe_by_value(self):
        notifier = Notifier()
        notifier.subscribe("token-renewed", lambda e, p: None)
        assert notifier.listener_count(SessionEvent.TOKEN_RENEWED) == 1

    def test_unsubscribe(self):
        notifier = Notifier()
        received = []
        unsubscribe = notifier.subscribe(
            SessionEvent.TOKEN_RENEWED, lambda e, p: received.append(p)
        )

        unsubscribe()
        unsubscribe()
        notifier.emit(SessionEvent.TOKEN_RENEWED, "window")

        assert received == []
        assert notifier.listener_count(SessionEvent.TOKEN_RENEWED) == 0

    def test_failing_listener_does_not_stop_others(self):
        notifier = Notifier()
        received = []

        def broken(event, payload):
            raise RuntimeError("listener bug")

        notifier.subscribe(SessionEvent.TOKEN_EXPIRED, broken)
        notifier.subscribe(SessionEvent.TOKEN_EXPIRED, lambda e, p: received.append(p))

        with patch("rainbow.sdk.session.events.sentry_sdk") as sentry:
            notifier.emit(SessionEvent.TOKEN_EXPIRED, "why")

        assert received == ["why"]
        sentry.capture_exception.assert_called_once()

    async def test_coroutine_listener_runs_as_task(self):
        notifier = Notifier()
        done = asyncio.Event()

        async def listener(event, payload):
            done.set()

        notifier.subscribe(SessionEvent.RECONNECT_SUCCEEDED, listener)
        notifier.emit(SessionEvent.RECONNECT_SUCCEEDED, 1)

        await asyncio.wait_for(done.wait(), timeout=1)

    async def test_failing_coroutine_listener_is_reported(self):
        notifier = Notifier()

        async def listener(event, payload):
            raise RuntimeError("async listener bug")

        notifier.subscribe(SessionEvent.RECONNECT_SUCCEEDED, listener)
        with patch("rainbow.sdk.session.events.sentry_sdk") as sentry:
            notifier.emit(SessionEvent.RECONNECT_SUCCEEDED, 1)
            for _ in range(3):
                await asyncio.sleep(0)

        sentry.capture_exception.assert_called_once()
