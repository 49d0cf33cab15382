"""
aiohttp implementation of the Transport interface.
"""

import asyncio
import logging
from typing import Any, List, Mapping, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from rainbow.sdk.config import Settings
from rainbow.sdk.errors import NetworkError, TransportError
from rainbow.sdk.metrics import MetricsClient
from rainbow.sdk.transport.base import Transport
from rainbow.sdk.transport.chain import (
    ChainRequest,
    ClientIdentityMiddleware,
    DebugMiddleware,
    EndOfLineChainMiddleware,
    MetricsMiddleware,
    RequestMiddlewareBase,
    build_chain,
)

logger = logging.getLogger(__name__)

GATEWAY_STATUSES = frozenset({502, 503, 504})
"""Statuses meaning the platform itself is unreachable rather than refusing the call."""


class AiohttpTransport(Transport):
    def __init__(
        self,
        base_url: str,
        client_session: Optional[ClientSession] = None,
        middleware: Optional[List[RequestMiddlewareBase]] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client_session
        self._owns_client = client_session is None
        self._middleware = list(middleware or [])
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, metrics_client: Optional[MetricsClient] = None
    ) -> "AiohttpTransport":
        middleware: List[RequestMiddlewareBase] = [
            ClientIdentityMiddleware(settings.client_name, settings.client_version)
        ]
        if metrics_client is not None:
            middleware.append(MetricsMiddleware(metrics_client))
        if settings.debug:
            middleware.append(DebugMiddleware(logger))

        return cls(
            settings.base_url,
            middleware=middleware,
            timeout=settings.request_timeout,
        )

    def _session(self) -> ClientSession:
        if self._client is None or self._client.closed:
            self._client = ClientSession(timeout=ClientTimeout(total=self._timeout))
            self._owns_client = True
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        chain_request = ChainRequest(
            method=method,
            url=url,
            headers=dict(headers or {}),
            kwargs={"json": body} if body is not None else None,
        )

        chain = build_chain(
            EndOfLineChainMiddleware(self._session().request, logger),
            self._middleware,
        )

        try:
            response = await chain(chain_request)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {path} failed: {e!r}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {path} failed: {e!r}") from e

        if response.status in GATEWAY_STATUSES:
            raise NetworkError(
                f"{method} {path} returned {response.status}",
                status=response.status,
                body=response.body,
            )

        if not response.ok:
            raise TransportError(
                f"{method} {path} returned {response.status}",
                status=response.status,
                body=response.body,
            )

        if response.malformed_json:
            raise TransportError(
                f"{method} {path} returned a malformed JSON body",
                status=response.status,
                body=response.body,
            )

        return response.body

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.closed:
            await self._client.close()
