from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class Transport(ABC):
    """
    Request interface consumed by the session layer.

    Paths are relative to the platform base URL. Responses are returned parsed (JSON
    as dicts/lists, text as str). Failures raise TransportError, or NetworkError when
    the platform could not be reached.
    """

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> Any:
        pass

    async def get(self, path: str, headers: Optional[Mapping[str, str]] = None) -> Any:
        return await self.request("GET", path, headers)

    async def post(
        self, path: str, headers: Optional[Mapping[str, str]] = None, body: Any = None
    ) -> Any:
        return await self.request("POST", path, headers, body)

    async def put(
        self, path: str, headers: Optional[Mapping[str, str]] = None, body: Any = None
    ) -> Any:
        return await self.request("PUT", path, headers, body)

    async def delete(
        self, path: str, headers: Optional[Mapping[str, str]] = None, body: Any = None
    ) -> Any:
        return await self.request("DELETE", path, headers, body)

    async def close(self) -> None:
        pass
