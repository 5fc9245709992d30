"""
Offline delivery cache.

Serves the application shell and static assets from generation-tagged
cache buckets so the app loads without network access.

Example:
    >>> manifest = CacheManifest(origin="https://app.example", version="v2")
    >>> fetcher = AiohttpFetcher()
    >>> worker = OfflineCacheWorker(manifest, fetcher)
    >>> await worker.start()
    >>> response = await worker.handle_fetch(Request.navigate("https://app.example/tasks"))
"""

from .cache import CacheBucket, CacheStorage
from .http import AiohttpFetcher, Fetcher, Request, Response
from .worker import CacheManifest, FetchStrategy, OfflineCacheWorker, WorkerState

__all__ = [
    "AiohttpFetcher",
    "CacheBucket",
    "CacheManifest",
    "CacheStorage",
    "FetchStrategy",
    "Fetcher",
    "OfflineCacheWorker",
    "Request",
    "Response",
    "WorkerState",
]
