"""
Named cache buckets.

Mirrors the browser cache storage model: a registry of named buckets, each
mapping a request URL (fragment stripped) to a stored response.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from urllib.parse import urldefrag, urljoin

from ..exceptions import CachePopulationError, LifeOSStorageError
from .http import Fetcher, Request, Response

logger = logging.getLogger(__name__)


def cache_key(url: str) -> str:
    return urldefrag(url)[0]


class CacheBucket:
    """One named bucket of cached responses."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, Response] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    async def match(self, request: Request | str) -> Response | None:
        url = request.url if isinstance(request, Request) else request
        cached = self._entries.get(cache_key(url))
        return cached.clone() if cached else None

    async def put(self, request: Request | str, response: Response) -> None:
        url = request.url if isinstance(request, Request) else request
        self._entries[cache_key(url)] = response.clone()

    async def delete(self, request: Request | str) -> bool:
        url = request.url if isinstance(request, Request) else request
        return self._entries.pop(cache_key(url), None) is not None

    async def add_all(self, urls: Iterable[str], fetch: Fetcher, base_url: str = "") -> None:
        """Fetch every URL and store them all, or store none.

        Raises:
            CachePopulationError: If any fetch fails or is not a success
        """
        requests = [Request(urljoin(base_url, url)) for url in urls]

        async def fetch_one(request: Request) -> Response:
            try:
                response = await fetch(request)
            except LifeOSStorageError as e:
                raise CachePopulationError(self.name, request.url, e) from e
            if not response.ok:
                raise CachePopulationError(
                    self.name, request.url, RuntimeError(f"HTTP {response.status}")
                )
            return response

        responses = await asyncio.gather(*(fetch_one(r) for r in requests))
        for request, response in zip(requests, responses):
            self._entries[cache_key(request.url)] = response.clone()


class CacheStorage:
    """Registry of cache buckets shared by every client of one origin."""

    def __init__(self) -> None:
        self._buckets: dict[str, CacheBucket] = {}

    async def open(self, name: str) -> CacheBucket:
        """Return the named bucket, creating it if needed."""
        bucket = self._buckets.get(name)
        if bucket is None:
            bucket = CacheBucket(name)
            self._buckets[name] = bucket
        return bucket

    async def has(self, name: str) -> bool:
        return name in self._buckets

    async def delete(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    async def keys(self) -> list[str]:
        return list(self._buckets)

    async def match(
        self, request: Request | str, bucket_names: Iterable[str] | None = None
    ) -> Response | None:
        """Look up a request across buckets, in the order given."""
        names = list(bucket_names) if bucket_names is not None else list(self._buckets)
        for name in names:
            bucket = self._buckets.get(name)
            if bucket is None:
                continue
            cached = await bucket.match(request)
            if cached is not None:
                return cached
        return None
