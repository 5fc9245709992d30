"""
Request/response value types for the offline cache.

A fetcher is any ``async (Request) -> Response`` callable that raises
``NetworkError`` when the network cannot be reached. ``AiohttpFetcher`` is
the real one; tests pass plain coroutines.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

import aiohttp

from ..exceptions import NetworkError


@dataclass(frozen=True)
class Request:
    """An intercepted request.

    Attributes:
        url: Absolute URL
        method: HTTP method
        mode: Request mode ("navigate" for top-level page loads)
        destination: What the response will be used for ("document", "image", ...)
        headers: Request headers (lower-case names)
    """

    url: str
    method: str = "GET"
    mode: str = "no-cors"
    destination: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def is_navigation(self) -> bool:
        """True for top-level document loads."""
        accept = self.headers.get("accept", "")
        return self.mode == "navigate" or self.destination == "document" or "text/html" in accept

    @classmethod
    def navigate(cls, url: str) -> Request:
        return cls(url, mode="navigate", destination="document", headers={"accept": "text/html"})


@dataclass(frozen=True)
class Response:
    """A response body with its status and headers."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> Response:
        return replace(self, headers=dict(self.headers))


Fetcher = Callable[[Request], Awaitable[Response]]


class AiohttpFetcher:
    """Network fetch primitive backed by an aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession | None = None, timeout: float = 30.0) -> None:
        self._session = session
        self._owns_session = session is None
        self.timeout = timeout

    async def __call__(self, request: Request) -> Response:
        session = self._get_session()
        try:
            async with session.request(
                request.method, request.url, headers=request.headers
            ) as response:
                body = await response.read()
                return Response(
                    status=response.status,
                    body=body,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    url=str(response.url),
                )
        except (aiohttp.ClientError, TimeoutError) as e:
            raise NetworkError(request.url, e) from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session
