from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from time import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Protocol,
    Union,
)
from aiohttp import ClientResponse, hdrs
from aiohttp.typedefs import StrOrURL
from multidict import CIMultiDictProxy

from rainbow.sdk.metrics import MetricsClient

RequestFunc = Callable[..., Any]

logger = logging.getLogger(__name__)


class _LoggerStub(Protocol):
    """_Logger defines which methods logger object should have."""

    @abstractmethod
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass


_LoggerType = Union[_LoggerStub, logging.Logger]


@dataclass
class ChainRequest:
    method: str
    url: StrOrURL
    headers: dict[str, Any] | None = None
    kwargs: dict[str, Any] | None = None


@dataclass
class ChainResponse:
    status: int
    headers: CIMultiDictProxy[str]
    body: str | bytes | dict[str, Any] | list[Any] | None = None
    malformed_json: bool = False
    """Declared as JSON but not decodable; `body` then holds the raw text."""

    @staticmethod
    async def from_aiohttp_response(response: ClientResponse) -> "ChainResponse":
        status = response.status
        headers = response.headers

        content_type = response.headers.get(hdrs.CONTENT_TYPE, "")

        if content_type.startswith("application/json"):
            try:
                body = await response.json()
            except ValueError:
                return ChainResponse(
                    status=status,
                    headers=headers,
                    body=await response.text(),
                    malformed_json=True,
                )
            return ChainResponse(status=status, headers=headers, body=body)
        elif content_type.startswith("text/"):
            return ChainResponse(
                status=status, headers=headers, body=await response.text()
            )
        else:
            return ChainResponse(
                status=status, headers=headers, body=await response.read()
            )

    @property
    def ok(self) -> bool:
        return self.status < 400


NextChainCallbackType = Callable[[ChainRequest], Awaitable[ChainResponse]]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> ChainResponse:
        pass

    def handle_gen(self, next: NextChainCallbackType) -> NextChainCallbackType:
        async def next_invoke(request: ChainRequest) -> ChainResponse:
            return await self.handle(next, request)

        return next_invoke


class ClientIdentityMiddleware(RequestMiddlewareBase):
    """Adds a User-Agent naming the SDK to every request."""

    def __init__(self, client_name: str, client_version: str) -> None:
        super().__init__()
        self._user_agent = f"rainbow-{client_name}/{client_version}"

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> ChainResponse:
        if request.headers is None:
            request.headers = {}
        request.headers.setdefault(hdrs.USER_AGENT, self._user_agent)
        return await next(request)


class MetricsMiddleware(RequestMiddlewareBase):
    def __init__(self, metrics_client: MetricsClient) -> None:
        super().__init__()
        self._metrics_client = metrics_client

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> ChainResponse:
        start_time = time()
        status = "error"
        try:
            response = await next(request)
            status = str(response.status)
            return response
        finally:
            tags = {"method": request.method.upper(), "status": status}
            self._metrics_client.timer(
                "rainbow.http.request.time", time() - start_time, tag_dict=tags
            )
            self._metrics_client.increment(
                "rainbow.http.request.count", 1, tag_dict=tags
            )


class DebugMiddleware(RequestMiddlewareBase):
    """Logs every request and response status. Authorization headers are masked."""

    def __init__(self, logger: _LoggerType) -> None:
        super().__init__()
        self._logger = logger

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> ChainResponse:
        headers = {
            key: ("***" if key.lower() in ("authorization", "x-rainbow-app-auth") else value)
            for key, value in (request.headers or {}).items()
        }
        self._logger.debug("request: %s %s %s", request.method, request.url, headers)
        response = await next(request)
        self._logger.debug(
            "response: %s %s -> %d", request.method, request.url, response.status
        )
        return response


class EndOfLineChainMiddleware:
    def __init__(self, request_func: RequestFunc, logger: _LoggerType) -> None:
        super().__init__()
        self._request_func = request_func
        self._logger = logger

    async def handle(self, request: ChainRequest) -> ChainResponse:
        self._logger.debug("Making request: %s %s", request.method, request.url)

        async with self._request_func(
            request.method.lower(),
            request.url,
            headers=request.headers,
            **(request.kwargs or {}),
        ) as response:
            return await ChainResponse.from_aiohttp_response(response)


def build_chain(
    end_of_line: EndOfLineChainMiddleware,
    middleware: list[RequestMiddlewareBase] | None = None,
) -> NextChainCallbackType:
    chain_callback: NextChainCallbackType = end_of_line.handle

    for mw in reversed(middleware or []):
        chain_callback = mw.handle_gen(chain_callback)

    return chain_callback
