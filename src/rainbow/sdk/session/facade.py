"""
RainbowSession: the session facade.

Composes credential encoding, the token lifecycle, reconnection and pagination around an
injected Transport, Scheduler and Notifier.

    session = await RainbowSession.from_settings(credentials, application)
    session.on(SessionEvent.TOKEN_EXPIRED, on_expired)
    await session.sign_in()
    groups = await session.get_groups()
    await session.close()

A RainbowSession is not safe for concurrent mutation from several callers; callers
sharing one must serialize sign-in and sign-out themselves.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from rainbow.sdk.auth.credentials import (
    ApplicationIdentity,
    Credentials,
    bearer_headers,
    login_headers,
)
from rainbow.sdk.auth.token import TokenWindow
from rainbow.sdk.config import LOGIN_PATH, LOGOUT_PATH, RENEW_PATH, Settings
from rainbow.sdk.errors import (
    AuthenticationError,
    NetworkError,
    TokenFormatError,
    TransportError,
)
from rainbow.sdk.metrics import MetricsClient, NoOpMetricsClient, create_metrics_client
from rainbow.sdk.session.backoff import FibonacciBackoff
from rainbow.sdk.session.events import Listener, Notifier, SessionEvent
from rainbow.sdk.session.health import HealthProbe
from rainbow.sdk.session.pagination import PaginatedAggregator, rest_page_fetcher
from rainbow.sdk.session.reconnect import ReconnectionController
from rainbow.sdk.session.scheduler import AsyncioScheduler, Scheduler
from rainbow.sdk.session.token import TokenLifecycleManager
from rainbow.sdk.transport.base import Transport
from rainbow.sdk.transport.http import AiohttpTransport

logger = logging.getLogger(__name__)

REFUSED_STATUSES = frozenset({400, 401, 403})


@dataclass(frozen=True)
class Session:
    """Snapshot of the signed-in session."""

    account: Dict[str, Any]
    application: Optional[Dict[str, Any]]
    token: str
    issued_at: int
    expires_at: int


class RainbowSession:
    def __init__(
        self,
        credentials: Credentials,
        application: ApplicationIdentity,
        transport: Transport,
        settings: Optional[Settings] = None,
        scheduler: Optional[Scheduler] = None,
        notifier: Optional[Notifier] = None,
        metrics_client: Optional[MetricsClient] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.credentials = credentials
        self.application = application
        self.transport = transport
        self.scheduler = scheduler or AsyncioScheduler()
        self.notifier = notifier or Notifier()
        self.metrics_client = metrics_client or NoOpMetricsClient()

        self.tokens = TokenLifecycleManager(
            renewer=self._renew_token,
            scheduler=self.scheduler,
            notifier=self.notifier,
            metrics_client=self.metrics_client,
            renew_before_expiry=self.settings.token_renew_before_expiry,
            renew_immediately_within=self.settings.token_renew_immediately_within,
        )

        self.health = HealthProbe(
            transport=transport,
            scheduler=self.scheduler,
            official_deployment=self.settings.is_official_deployment,
            settle_delay=self.settings.probe_settle_delay,
            metrics_client=self.metrics_client,
        )

        self.reconnection = ReconnectionController(
            probe=self.health.check,
            scheduler=self.scheduler,
            notifier=self.notifier,
            backoff=FibonacciBackoff(
                initial_delay=self.settings.reconnect_initial_delay_ms,
                max_delay=self.settings.reconnect_max_delay_ms,
                randomization_factor=self.settings.reconnect_randomization_factor,
                max_attempts=self.settings.reconnect_max_attempts,
                rng=rng,
            ),
            metrics_client=self.metrics_client,
        )

        self.aggregator = PaginatedAggregator(
            page_size=self.settings.page_size,
            max_pages=self.settings.pagination_max_pages,
            metrics_client=self.metrics_client,
        )

        self._account: Optional[Dict[str, Any]] = None
        self._application_info: Optional[Dict[str, Any]] = None

    @classmethod
    async def from_settings(
        cls,
        credentials: Credentials,
        application: ApplicationIdentity,
        settings: Optional[Settings] = None,
    ) -> "RainbowSession":
        """
        Build a session using the aiohttp transport and the configured metrics backend.
        """
        settings = settings or Settings()
        metrics_client = await create_metrics_client(
            settings.metrics_backend,
            host=settings.statsd_host,
            port=settings.statsd_port,
            debug=settings.debug,
        )
        transport = AiohttpTransport.from_settings(settings, metrics_client)
        return cls(
            credentials,
            application,
            transport,
            settings=settings,
            metrics_client=metrics_client,
        )

    @property
    def user_id(self) -> str:
        return self._account.get("id", "") if self._account else ""

    @property
    def logged_in_user(self) -> Optional[Dict[str, Any]]:
        return self._account

    @property
    def is_signed_in(self) -> bool:
        return self._account is not None and self.tokens.window is not None

    @property
    def session(self) -> Optional[Session]:
        window = self.tokens.window
        if self._account is None or window is None:
            return None
        return Session(
            account=self._account,
            application=self._application_info,
            token=window.token,
            issued_at=window.issued_at,
            expires_at=window.expires_at,
        )

    def on(self, event: SessionEvent, listener: Listener) -> Callable[[], None]:
        return self.notifier.subscribe(event, listener)

    async def start(self) -> None:
        logger.info("email used: %s", self.credentials.login)

    async def stop(self) -> None:
        self.reconnection.cancel()
        await self.sign_out()

    async def close(self) -> None:
        try:
            await self.stop()
        finally:
            await self.transport.close()
            await self.metrics_client.close()

    async def sign_in(self) -> Dict[str, Any]:
        """
        Sign in with the configured credentials and start tracking the issued token.

        Raises:
            AuthenticationError: If the platform refused the credentials
            NetworkError: If the platform could not be reached; a reconnection cycle is
                started in the background
            TokenFormatError: If the issued token cannot be decoded
        """
        headers = login_headers(
            self.credentials,
            self.application,
            self.settings.client_name,
            self.settings.client_version,
        )

        try:
            body = await self.transport.get(LOGIN_PATH, headers)
        except NetworkError:
            self._route_to_reconnect()
            raise
        except TransportError as e:
            if e.status in REFUSED_STATUSES:
                raise AuthenticationError(
                    f"Sign-in refused for {self.credentials.login} ({e.status})"
                ) from e
            raise

        if not isinstance(body, dict) or not body.get("token"):
            raise AuthenticationError("Login response carries no token")

        # Set before the token is tracked: an immediate renewal already notifies listeners.
        self._account = body.get("loggedInUser") or {}
        self._application_info = body.get("loggedInApplication")

        try:
            await self.tokens.on_token_issued(body["token"])
        except TokenFormatError as e:
            self._account = None
            self._application_info = None
            logger.error("token received at sign-in could not be used: %s", e)
            raise

        logger.info("welcome %s!", self._account.get("displayName", self.credentials.login))
        logger.debug("user information %s", self._account.get("id"))
        return body

    async def sign_out(self) -> Optional[Any]:
        """
        Cancel the pending renewal, then log out.

        The renewal timer is cancelled before anything else, so no renewal can fire once
        sign-out has started. Local session state is cleared even if the logout request
        fails.
        """
        window = self.tokens.window
        self.tokens.cancel()

        if self._account is None and window is None:
            logger.warning("seems to be already signed-out!")
            return None

        try:
            result = None
            if window is not None:
                result = await self.transport.get(
                    LOGOUT_PATH, bearer_headers(window.token)
                )
        finally:
            self._account = None
            self._application_info = None

        logger.info("successfully signed-out!")
        return result

    async def reconnect(self) -> None:
        """
        Wait for connectivity to come back, starting a reconnection cycle if none runs.

        Raises:
            PermanentReconnectFailure: If every attempt failed.
        """
        await self.reconnection.reconnect()

    async def check_health(self) -> Any:
        return await self.health.check()

    def request_headers(
        self, accept: Optional[str] = None, range_: Optional[str] = None
    ) -> Dict[str, str]:
        window = self.tokens.window
        if window is None:
            raise AuthenticationError("Not signed in")
        return bearer_headers(window.token, accept, range_)

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Authenticated request. Connectivity failures start a reconnection cycle before
        being raised; the request itself is not retried.
        """
        if headers is None:
            headers = self.request_headers()
        try:
            return await self.transport.request(method, path, headers, body)
        except NetworkError:
            self._route_to_reconnect()
            raise

    async def get(self, path: str, headers: Optional[Mapping[str, str]] = None) -> Any:
        return await self.request("GET", path, headers=headers)

    async def post(
        self, path: str, body: Any = None, headers: Optional[Mapping[str, str]] = None
    ) -> Any:
        return await self.request("POST", path, body, headers)

    async def put(
        self, path: str, body: Any = None, headers: Optional[Mapping[str, str]] = None
    ) -> Any:
        return await self.request("PUT", path, body, headers)

    async def delete(
        self, path: str, body: Any = None, headers: Optional[Mapping[str, str]] = None
    ) -> Any:
        return await self.request("DELETE", path, body, headers)

    async def fetch_all(
        self, path: str, page_size: Optional[int] = None, label: str = "items"
    ) -> List[Any]:
        """
        Walk a listing endpoint answering `{"data": [...], "total": N}`.
        """
        return await self.aggregator.fetch_all(
            rest_page_fetcher(self.get, path), page_size=page_size, label=label
        )

    async def get_groups(self) -> List[Any]:
        user_id = self._require_user_id()
        groups = await self.fetch_all(
            f"/api/rainbow/enduser/v1.0/users/{user_id}/groups?format=full",
            label="groups",
        )
        logger.info("received %d groups", len(groups))
        return groups

    async def get_bubbles(self) -> List[Any]:
        user_id = self._require_user_id()
        bubbles = await self.fetch_all(
            f"/api/rainbow/enduser/v1.0/rooms?format=full&userId={user_id}",
            label="bubbles",
        )
        logger.info("received %d bubbles", len(bubbles))
        return bubbles

    def _require_user_id(self) -> str:
        if not self.user_id:
            raise AuthenticationError("Not signed in")
        return self.user_id

    async def _renew_token(self, window: TokenWindow) -> str:
        try:
            body = await self.transport.get(RENEW_PATH, bearer_headers(window.token))
        except NetworkError:
            self._route_to_reconnect()
            raise

        if not isinstance(body, dict) or not body.get("token"):
            raise TransportError("Renew response carries no token", body=body)

        logger.info("new token received")
        return body["token"]

    def _route_to_reconnect(self) -> None:
        if not self.reconnection.active:
            logger.warning("connection lost, starting reconnection")
        self.reconnection.trigger_reconnect()
