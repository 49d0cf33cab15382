"""
Reconnection after connectivity loss.

The ReconnectionController drives health probes through a Fibonacci backoff:

    IDLE -> PROBE_SCHEDULED -> PROBING -> IDLE               (probe succeeded)
                                       -> PROBE_SCHEDULED    (failed, attempts left)
                                       -> PERMANENT_FAILURE  (failed max_attempts times)

Only one cycle runs at a time. Triggering while a cycle is in flight returns the same
waiter instead of starting another one.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import sentry_sdk

from rainbow.sdk.errors import PermanentReconnectFailure
from rainbow.sdk.metrics import MetricsClient, NoOpMetricsClient
from rainbow.sdk.session.backoff import FibonacciBackoff
from rainbow.sdk.session.events import Notifier, SessionEvent
from rainbow.sdk.session.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[Any]]


class ReconnectState(str, Enum):
    IDLE = "idle"
    PROBE_SCHEDULED = "probe_scheduled"
    PROBING = "probing"
    PERMANENT_FAILURE = "permanent_failure"


def _consume_result(waiter: "asyncio.Future[None]") -> None:
    # The outcome is also delivered as a notification; nobody has to await the waiter.
    if not waiter.cancelled():
        waiter.exception()


class ReconnectionController:
    def __init__(
        self,
        probe: Probe,
        scheduler: Scheduler,
        notifier: Notifier,
        backoff: FibonacciBackoff,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self._probe = probe
        self._scheduler = scheduler
        self._notifier = notifier
        self.backoff = backoff
        self._metrics_client = metrics_client or NoOpMetricsClient()

        self.state = ReconnectState.IDLE
        self._timer: Optional[TimerHandle] = None
        self._waiter: Optional["asyncio.Future[None]"] = None

    @property
    def active(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    def trigger_reconnect(self) -> "asyncio.Future[None]":
        """
        Start a reconnection cycle, or join the one in flight.

        Returns:
            asyncio.Future[None]: Resolves when a probe succeeds, or fails with
            PermanentReconnectFailure once every attempt has failed.
        """
        if self._waiter is not None and not self._waiter.done():
            logger.debug("reconnection already in progress")
            return self._waiter

        if self.state == ReconnectState.PERMANENT_FAILURE:
            logger.info("restarting reconnection after permanent failure")
            self.backoff.reset()

        self._waiter = asyncio.get_running_loop().create_future()
        self._waiter.add_done_callback(_consume_result)

        self._schedule_probe()
        return self._waiter

    async def reconnect(self) -> None:
        """
        Trigger (or join) a reconnection cycle and wait for its outcome.

        Raises:
            PermanentReconnectFailure: If every attempt failed.
        """
        await asyncio.shield(self.trigger_reconnect())

    def cancel(self) -> None:
        """Abort the cycle in flight, if any, and reset the backoff."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = None
        self.backoff.reset()
        self.state = ReconnectState.IDLE

    def _schedule_probe(self) -> None:
        delay_ms = self.backoff.jittered()

        logger.debug(
            "next attempt in %dms (attempt %d/%d)",
            delay_ms,
            self.backoff.attempt_count + 1,
            self.backoff.max_attempts,
        )
        self._metrics_client.gauge("rainbow.session.reconnect.delay", delay_ms)

        self.state = ReconnectState.PROBE_SCHEDULED
        self._timer = self._scheduler.call_later(delay_ms / 1000.0, self._attempt)

    async def _attempt(self) -> None:
        self._timer = None
        waiter = self._waiter
        if waiter is None or waiter.done():
            return

        self.state = ReconnectState.PROBING
        try:
            await self._probe()
        except Exception as e:
            if waiter is not self._waiter:
                return
            logger.debug("attempt failed: %r", e)
            self._on_failure(waiter)
            return

        if waiter is not self._waiter:
            return
        self._on_success(waiter)

    def _on_success(self, waiter: "asyncio.Future[None]") -> None:
        attempts = self.backoff.attempt_count + 1
        logger.info("reconnection attempt successful after %d attempt(s)", attempts)

        self.backoff.reset()
        self.state = ReconnectState.IDLE

        self._metrics_client.increment(
            "rainbow.session.reconnect.attempt", 1, tag_dict={"result": "success"}
        )
        self._notifier.emit(SessionEvent.RECONNECT_SUCCEEDED, attempts)
        waiter.set_result(None)

    def _on_failure(self, waiter: "asyncio.Future[None]") -> None:
        attempt = self.backoff.attempt_count + 1
        logger.debug("attempt #%d has failed", attempt)

        self._metrics_client.increment(
            "rainbow.session.reconnect.attempt", 1, tag_dict={"result": "failure"}
        )
        self._notifier.emit(SessionEvent.RECONNECT_FAILED, attempt)

        if self.backoff.record_failure():
            self._schedule_probe()
            return

        self.state = ReconnectState.PERMANENT_FAILURE
        error = PermanentReconnectFailure(
            f"Reconnection failed after {self.backoff.attempt_count} attempts",
            attempts=self.backoff.attempt_count,
        )
        sentry_sdk.capture_exception(error)
        logger.error("%s, giving up", error)

        self._notifier.emit(SessionEvent.RECONNECT_PERMANENT_FAILURE, error)
        waiter.set_exception(error)
