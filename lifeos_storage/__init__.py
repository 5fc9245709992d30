"""
LifeOS Storage

Local-first persistence with optional background sync.

Provides:
- Durable per-collection record storage (SQLite)
- Optional replication to a remote backend that never blocks or
  overrides local writes
- An offline delivery cache for the application shell and static assets

Usage:

    >>> from lifeos_storage import Record, StorageConfig, StorageFactory
    >>> async with await StorageFactory.open(StorageConfig()) as factory:
    ...     tasks = factory.create("tasks")
    ...     await tasks.save(Record.new(title="Buy milk"))
    ...     print(await tasks.get_all())
"""

from .exceptions import (
    CachePopulationError,
    ConfigurationError,
    LifeOSStorageError,
    NetworkError,
    StorageIOError,
    SyncError,
    SyncHTTPError,
    UnsupportedStorageTypeError,
    ValidationError,
)
from .offline import CacheManifest, CacheStorage, OfflineCacheWorker, Request, Response
from .records import Record, filter_kind, generate_id
from .storage import RecordStorage, StorageConfig, StorageFactory, StorageType
from .sync import ConnectivityMonitor, SyncConfig, SyncConfigStore, SyncStatus

__all__ = [
    # Records
    "Record",
    "filter_kind",
    "generate_id",
    # Storage
    "RecordStorage",
    "StorageConfig",
    "StorageFactory",
    "StorageType",
    # Sync
    "ConnectivityMonitor",
    "SyncConfig",
    "SyncConfigStore",
    "SyncStatus",
    # Offline cache
    "CacheManifest",
    "CacheStorage",
    "OfflineCacheWorker",
    "Request",
    "Response",
    # Exceptions
    "LifeOSStorageError",
    "StorageIOError",
    "ValidationError",
    "UnsupportedStorageTypeError",
    "SyncError",
    "SyncHTTPError",
    "ConfigurationError",
    "CachePopulationError",
    "NetworkError",
]

__version__ = "0.1.0"
