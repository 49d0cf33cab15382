"""
Bearer token lifecycle.

The TokenLifecycleManager owns the current TokenWindow and at most one pending renewal
timer. It moves through these states:

    UNAUTHENTICATED -> SCHEDULED -> RENEWING -> SCHEDULED | EXPIRED

Renewal is scheduled `renew_before_expiry` seconds (one hour by default) before the
token expires. A token already within `renew_immediately_within` seconds (five minutes)
of its expiry is renewed right away, without a timer. A failed renewal is not retried:
the window is dropped and a `token-expired` notification tells the caller to sign in
again.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

import sentry_sdk

from rainbow.sdk.auth.token import TokenWindow, token_window
from rainbow.sdk.errors import TokenExpiredError, TokenFormatError
from rainbow.sdk.metrics import MetricsClient, NoOpMetricsClient
from rainbow.sdk.session.events import Notifier, SessionEvent
from rainbow.sdk.session.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

Renewer = Callable[[TokenWindow], Awaitable[str]]
"""Performs the renewal request with the current window and returns the new token."""


class TokenState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    SCHEDULED = "scheduled"
    RENEWING = "renewing"
    EXPIRED = "expired"


class TokenLifecycleManager:
    def __init__(
        self,
        renewer: Renewer,
        scheduler: Scheduler,
        notifier: Notifier,
        metrics_client: Optional[MetricsClient] = None,
        renew_before_expiry: int = 3600,
        renew_immediately_within: int = 300,
        decoder: Callable[[str], TokenWindow] = token_window,
    ) -> None:
        self._renewer = renewer
        self._scheduler = scheduler
        self._notifier = notifier
        self._metrics_client = metrics_client or NoOpMetricsClient()
        self._renew_before_expiry = renew_before_expiry
        self._renew_immediately_within = renew_immediately_within
        self._decoder = decoder

        self.state = TokenState.UNAUTHENTICATED
        self.window: Optional[TokenWindow] = None
        self._timer: Optional[TimerHandle] = None

        # Bumped by cancel() so a renewal in flight during sign-out is discarded.
        self._generation = 0

    @property
    def pending_timer(self) -> Optional[TimerHandle]:
        return self._timer

    async def on_token_issued(self, token: str) -> TokenWindow:
        """
        Track a freshly issued token and schedule its renewal.

        Raises:
            TokenFormatError: If the token's `iat` / `exp` claims cannot be decoded. The
                current window and timer are left untouched.
        """
        window = self._decoder(token)
        self.window = window

        logger.debug(
            "token issued: iat=%s exp=%s half_life=%s",
            window.issued_at,
            window.expires_at,
            window.half_life,
        )

        await self._schedule(window, after_renewal=False)
        return window

    async def renew(self) -> None:
        """
        Renew the current token.

        On success the window is replaced as a whole, `token-renewed` is emitted and the
        next renewal is scheduled. On failure the timer is cleared, the state becomes
        EXPIRED and `token-expired` is emitted. The same happens when the renewal is
        cancelled before it completes.

        Raises:
            TokenFormatError: If the renewed token cannot be decoded (after `token-expired`
                has been emitted).
        """
        if self.state == TokenState.RENEWING:
            logger.debug("renewal already in progress")
            return

        current = self.window
        if current is None:
            logger.warning("no token to renew (state=%s)", self.state.value)
            return

        generation = self._generation
        self.state = TokenState.RENEWING
        logger.debug("renewing authentication token")

        try:
            token = await self._renewer(current)
        except asyncio.CancelledError:
            if generation == self._generation:
                logger.warning("token renewal cancelled, dropping the token")
                self._expire(TokenExpiredError("Token renewal was cancelled"))
            raise
        except Exception as e:
            if generation != self._generation:
                logger.debug("session torn down during renewal, ignoring failure")
                return
            sentry_sdk.capture_exception(e)
            logger.exception("Token renewal failed")
            self._expire(TokenExpiredError(f"Token renewal failed: {e}"))
            return

        if generation != self._generation:
            logger.debug("session torn down during renewal, dropping renewed token")
            return

        try:
            window = self._decoder(token)
        except TokenFormatError as e:
            sentry_sdk.capture_exception(e)
            logger.error("Renewed token is malformed: %s", e)
            self._expire(TokenExpiredError(f"Renewed token is malformed: {e}"))
            raise

        self.window = window
        logger.info("renew authentication token success")
        self._metrics_client.increment("rainbow.session.token.renewed", 1)
        self._notifier.emit(SessionEvent.TOKEN_RENEWED, window)

        await self._schedule(window, after_renewal=True)

    def cancel(self) -> None:
        """
        Drop the current token and cancel the pending renewal, if any. Synchronous: no
        renewal can fire once this returns.
        """
        self._generation += 1
        self._cancel_timer()
        self.window = None
        self.state = TokenState.UNAUTHENTICATED

    async def _schedule(self, window: TokenWindow, after_renewal: bool) -> None:
        now = self._scheduler.now()

        if now >= window.expires_at - self._renew_immediately_within:
            self._cancel_timer()

            if after_renewal:
                # Renewing again would loop on a server issuing short-lived tokens.
                self._expire(
                    TokenExpiredError("Renewed token is already about to expire")
                )
                return

            if now >= window.expires_at:
                logger.warning("auth token has already expired, renew it immediately")
            else:
                logger.warning(
                    "auth token will expire in less than %d seconds, renew it immediately",
                    self._renew_immediately_within,
                )
            await self.renew()
            return

        renew_at = window.expires_at - self._renew_before_expiry
        delay = renew_at - now

        self._cancel_timer()
        self._timer = self._scheduler.call_later(delay, self._on_timer)
        self.state = TokenState.SCHEDULED

        logger.info(
            "token renewal scheduled in %.0f seconds (expires_at=%s)",
            max(delay, 0),
            window.expires_at,
        )

    async def _on_timer(self) -> None:
        self._timer = None
        await self.renew()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            logger.debug("remove token renewal timer")
            self._timer.cancel()
            self._timer = None

    def _expire(self, error: TokenExpiredError) -> None:
        self._cancel_timer()
        self.window = None
        self.state = TokenState.EXPIRED
        self._metrics_client.increment("rainbow.session.token.expired", 1)
        self._notifier.emit(SessionEvent.TOKEN_EXPIRED, error)
