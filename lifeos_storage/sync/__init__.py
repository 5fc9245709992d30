"""
Background sync for local-first storage.

Local storage is always authoritative. Sync uploads full collection
snapshots, imports remote-only records, and never overwrites a local record.
"""

from .client import SyncClient, SyncStatus
from .config import SyncConfig, SyncConfigStore
from .connectivity import ConnectivityMonitor
from .storage import SyncedRecordStorage
from .tasks import BackgroundTaskQueue

__all__ = [
    "BackgroundTaskQueue",
    "ConnectivityMonitor",
    "SyncClient",
    "SyncConfig",
    "SyncConfigStore",
    "SyncStatus",
    "SyncedRecordStorage",
]
