"""
Clock and timer capability used by the session components.

Token renewal and reconnection backoff never sleep in place: they ask a Scheduler to
call them back later and keep the returned handle so the pending call can be cancelled.
Tests substitute a scheduler with a manual clock.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Protocol, Set

import sentry_sdk

logger = logging.getLogger(__name__)

ScheduledCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(ABC):
    @abstractmethod
    def now(self) -> float:
        """Current time in seconds since epoch."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: ScheduledCallback) -> TimerHandle:
        """
        Run `callback` once after `delay` seconds. A negative delay means "as soon as
        possible", not an error.
        """
        pass

    @abstractmethod
    async def sleep(self, delay: float) -> None:
        pass


class _AsyncioTimerHandle:
    def __init__(self) -> None:
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._task is not None and not self._task.done():
            # Never cancel the task cancelling us, a renewal may reschedule itself.
            if self._task is not asyncio.current_task():
                self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by the running asyncio event loop and the wall clock.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task[None]] = set()

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: ScheduledCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = _AsyncioTimerHandle()

        def fire() -> None:
            if handle.cancelled:
                return
            task = loop.create_task(self._run(callback))
            handle._task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        handle._timer = loop.call_later(max(0.0, delay), fire)
        return handle

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(max(0.0, delay))

    async def _run(self, callback: ScheduledCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Scheduled callback failed")
