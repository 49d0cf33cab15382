"""
Session notifications.

Lifecycle signals (token renewed or expired, reconnection outcome) are delivered to
listeners registered on a Notifier. Delivery is fire-and-forget: a failing listener is
reported and does not affect the emitter or the other listeners.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Set

import sentry_sdk

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    TOKEN_RENEWED = "token-renewed"
    """Payload: the new TokenWindow."""

    TOKEN_EXPIRED = "token-expired"
    """Payload: the TokenExpiredError describing why renewal failed."""

    RECONNECT_SUCCEEDED = "reconnect-succeeded"
    """Payload: number of attempts the cycle took."""

    RECONNECT_FAILED = "reconnect-failed"
    """Payload: the failed attempt number (1-based)."""

    RECONNECT_PERMANENT_FAILURE = "reconnect-permanent-failure"
    """Payload: the PermanentReconnectFailure ending the cycle."""


Listener = Callable[[SessionEvent, Any], Any]


class Notifier:
    """
    Named-event dispatcher. Listeners may be plain functions or coroutine functions;
    coroutine listeners run as tasks on the current loop.
    """

    def __init__(self) -> None:
        self._listeners: Dict[SessionEvent, List[Listener]] = defaultdict(list)
        self._tasks: Set[asyncio.Task[Any]] = set()

    def subscribe(self, event: SessionEvent, listener: Listener) -> Callable[[], None]:
        """
        Register `listener` for `event`. Returns a callable removing the registration.
        """
        event = SessionEvent(event)
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def listener_count(self, event: SessionEvent) -> int:
        return len(self._listeners[SessionEvent(event)])

    def emit(self, event: SessionEvent, payload: Any = None) -> None:
        logger.debug("emit %s", event.value)

        for listener in list(self._listeners[event]):
            try:
                result = listener(event, payload)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_task_done)
            except Exception as e:
                sentry_sdk.capture_exception(e)
                logger.exception("Listener for %s failed", event.value)

    def _on_task_done(self, task: "asyncio.Future[Any]") -> None:
        self._tasks.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            sentry_sdk.capture_exception(e)
            logger.error("Listener task failed: %r", e)
