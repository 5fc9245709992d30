"""
Offline delivery cache worker.

Keeps the application shell and static assets available without network
access. Lifecycle:

1. ``install``  - populate the generation's shell and static buckets; any
   failure is fatal and the worker becomes redundant. On success the worker
   is ready to activate right away (it does not wait for old clients).
2. ``activate`` - delete every bucket that is not one of the current
   generation's, then take control of all connected clients.
3. ``handle_fetch`` - per-request strategy:
   - non-GET, cross-origin and non-HTTP(S) requests pass through (None)
   - navigations and static assets: cache-first
   - everything else: network-first with cache fallback

Control messages: ``{"type": "SKIP_WAITING"}`` and
``{"type": "CACHE_URLS", "urls": [...]}``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urljoin, urlsplit

from ..exceptions import CachePopulationError, NetworkError
from .cache import CacheStorage
from .http import Fetcher, Request, Response

logger = logging.getLogger(__name__)

DEFAULT_SHELL_ROUTES = ("/", "/tasks", "/habits", "/finance", "/fitness", "/nutrition")
DEFAULT_STATIC_ASSETS = ("/manifest.json", "/favicon.ico")
DEFAULT_STATIC_PREFIXES = ("/_next/static/", "/_next/image", "/icon-")
DEFAULT_STATIC_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".svg", ".ico", ".webp",
    ".woff", ".woff2", ".ttf", ".eot",
)


class WorkerState(Enum):
    """Lifecycle state of the offline cache worker."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"  # Ready to activate
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"  # Install failed


class FetchStrategy(Enum):
    """How an intercepted request is served."""

    PASSTHROUGH = "passthrough"
    CACHE_FIRST = "cache_first"
    NETWORK_FIRST = "network_first"


@dataclass
class CacheManifest:
    """What one cache generation holds and how its buckets are named.

    Attributes:
        origin: Scheme and host the worker serves (e.g. "https://app.example")
        version: Generation tag embedded in bucket names
        prefix: Optional application prefix for bucket names
        shell_routes: Navigable routes cached at install
        static_assets: Static URLs cached at install
        static_prefixes: Path prefixes treated as static assets
        static_extensions: File extensions treated as static assets
        api_prefix: Path prefix of API calls (served network-first)
    """

    origin: str
    version: str = "v1"
    prefix: str = ""
    shell_routes: tuple[str, ...] = DEFAULT_SHELL_ROUTES
    static_assets: tuple[str, ...] = DEFAULT_STATIC_ASSETS
    static_prefixes: tuple[str, ...] = DEFAULT_STATIC_PREFIXES
    static_extensions: tuple[str, ...] = DEFAULT_STATIC_EXTENSIONS
    api_prefix: str = "/api/"
    extra_bucket_names: tuple[str, ...] = field(default_factory=tuple)

    def bucket_name(self, kind: str) -> str:
        name = f"{kind}-{self.version}"
        return f"{self.prefix}-{name}" if self.prefix else name

    @property
    def shell_cache(self) -> str:
        return self.bucket_name("shell")

    @property
    def static_cache(self) -> str:
        return self.bucket_name("static")

    @property
    def default_cache(self) -> str:
        return self.bucket_name("default")

    @property
    def current_buckets(self) -> frozenset[str]:
        return frozenset(
            (self.shell_cache, self.static_cache, self.default_cache, *self.extra_bucket_names)
        )

    @property
    def root_url(self) -> str:
        return urljoin(self.origin, "/")

    def is_static_path(self, path: str) -> bool:
        if path in self.static_assets:
            return True
        if any(path.startswith(prefix) for prefix in self.static_prefixes):
            return True
        return path.lower().endswith(self.static_extensions)

    def is_api_path(self, path: str) -> bool:
        return path.startswith(self.api_prefix)


class OfflineCacheWorker:
    """Install/activate/fetch state machine over a shared ``CacheStorage``."""

    def __init__(
        self,
        manifest: CacheManifest,
        fetch: Fetcher,
        caches: CacheStorage | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            manifest: Cache generation description
            fetch: Network fetch primitive
            caches: Bucket registry shared across workers of the same origin
        """
        self.manifest = manifest
        self.fetch = fetch
        self.caches = caches or CacheStorage()
        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False

        self._clients: set[str] = set()
        self._controlled: set[str] = set()
        self._origin = urlsplit(manifest.origin)

    # Lifecycle

    async def install(self) -> None:
        """Populate the shell and static buckets.

        Raises:
            CachePopulationError: If any URL could not be cached
        """
        self.state = WorkerState.INSTALLING
        logger.info(f"Installing offline cache {self.manifest.version}")

        try:
            shell = await self.caches.open(self.manifest.shell_cache)
            static = await self.caches.open(self.manifest.static_cache)
            await asyncio.gather(
                shell.add_all(self.manifest.shell_routes, self.fetch, self.manifest.origin),
                static.add_all(self.manifest.static_assets, self.fetch, self.manifest.origin),
            )
        except CachePopulationError as e:
            self.state = WorkerState.REDUNDANT
            logger.error(
                f"Offline cache install failed: {e}",
                extra={"operation": "install", "bucket": e.bucket},
            )
            raise

        self.state = WorkerState.INSTALLED
        self.skip_waiting_requested = True
        logger.info(f"Offline cache {self.manifest.version} installed")

    async def activate(self) -> list[str]:
        """Delete stale buckets and claim clients.

        Returns:
            Names of the deleted buckets
        """
        if self.state != WorkerState.INSTALLED:
            raise RuntimeError(f"Cannot activate from state {self.state.value}")

        self.state = WorkerState.ACTIVATING
        current = self.manifest.current_buckets
        deleted: list[str] = []
        for name in await self.caches.keys():
            if name not in current:
                logger.info(
                    f"Deleting stale cache bucket: {name}",
                    extra={"operation": "activate", "bucket": name},
                )
                await self.caches.delete(name)
                deleted.append(name)

        self.claim()
        self.state = WorkerState.ACTIVATED
        logger.info(f"Offline cache {self.manifest.version} activated")
        return deleted

    async def start(self) -> None:
        """Install, then activate immediately."""
        await self.install()
        await self.activate()

    async def skip_waiting(self) -> None:
        """Activate now if installed; otherwise only record the request."""
        self.skip_waiting_requested = True
        if self.state == WorkerState.INSTALLED:
            await self.activate()

    # Clients

    def connect_client(self, client_id: str) -> None:
        self._clients.add(client_id)

    def disconnect_client(self, client_id: str) -> None:
        self._clients.discard(client_id)
        self._controlled.discard(client_id)

    def claim(self) -> None:
        """Take control of every connected client."""
        self._controlled = set(self._clients)

    @property
    def controlled_clients(self) -> frozenset[str]:
        return frozenset(self._controlled)

    # Fetch

    def classify(self, request: Request) -> FetchStrategy:
        """Decide how a request is served."""
        if request.method.upper() != "GET":
            return FetchStrategy.PASSTHROUGH
        if request.scheme not in ("http", "https"):
            return FetchStrategy.PASSTHROUGH
        parts = urlsplit(request.url)
        if (parts.scheme, parts.netloc) != (self._origin.scheme, self._origin.netloc):
            return FetchStrategy.PASSTHROUGH

        if self.manifest.is_api_path(request.path):
            return FetchStrategy.NETWORK_FIRST
        if request.is_navigation or self.manifest.is_static_path(request.path):
            return FetchStrategy.CACHE_FIRST
        return FetchStrategy.NETWORK_FIRST

    async def handle_fetch(self, request: Request) -> Response | None:
        """Serve an intercepted request.

        Returns:
            The response, or None when the request is not intercepted

        Raises:
            NetworkError: If the network failed and no cached fallback exists
        """
        strategy = self.classify(request)
        logger.debug(f"{strategy.value}: {request.method} {request.url}")

        if strategy == FetchStrategy.CACHE_FIRST:
            return await self._cache_first(request)
        if strategy == FetchStrategy.NETWORK_FIRST:
            return await self._network_first(request)
        return None

    async def _cache_first(self, request: Request) -> Response:
        cached = await self.caches.match(request, self._lookup_order())
        if cached is not None:
            return cached

        try:
            return await self._fetch_and_store(request)
        except NetworkError as e:
            logger.warning(f"Cache-first fetch failed for {request.url}: {e}")
            fallback = await self._navigation_fallback(request)
            if fallback is not None:
                return fallback
            raise

    async def _network_first(self, request: Request) -> Response:
        try:
            return await self._fetch_and_store(request)
        except NetworkError:
            logger.info(f"Network failed, trying cache: {request.url}")
            cached = await self.caches.match(request, self._lookup_order())
            if cached is not None:
                return cached
            fallback = await self._navigation_fallback(request)
            if fallback is not None:
                return fallback
            raise

    async def _fetch_and_store(self, request: Request) -> Response:
        response = await self.fetch(request)
        if response.ok:
            bucket = await self.caches.open(self.manifest.default_cache)
            await bucket.put(request, response)
        return response

    async def _navigation_fallback(self, request: Request) -> Response | None:
        if not request.is_navigation:
            return None
        return await self.caches.match(self.manifest.root_url, self._lookup_order())

    def _lookup_order(self) -> list[str]:
        return [
            self.manifest.default_cache,
            self.manifest.shell_cache,
            self.manifest.static_cache,
        ]

    # Messages

    async def handle_message(self, message: dict[str, Any]) -> bool:
        """Handle a control message.

        Returns:
            True if the message was recognized and applied
        """
        if not isinstance(message, dict):
            return False

        message_type = message.get("type")
        if message_type == "SKIP_WAITING":
            await self.skip_waiting()
            return True

        if message_type == "CACHE_URLS":
            urls = message.get("urls") or []
            if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
                logger.warning("CACHE_URLS message without a list of URLs")
                return False
            bucket = await self.caches.open(self.manifest.default_cache)
            try:
                await bucket.add_all(urls, self.fetch, self.manifest.origin)
            except CachePopulationError as e:
                logger.warning(f"Failed to pre-cache URLs: {e}")
                return False
            return True

        logger.debug(f"Ignoring unknown message type: {message_type!r}")
        return False
