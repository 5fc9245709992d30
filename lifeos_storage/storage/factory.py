"""
Storage factory.

Assembles the storage pipeline for a named collection: the local store,
optionally wrapped with background sync. Domain services depend only on the
``RecordStorage`` contract and never on whether replication is active.

Example:
    >>> async with await StorageFactory.open(StorageConfig()) as factory:
    ...     tasks = factory.create("tasks")
    ...     await tasks.save(Record.new(title="Write report"))
"""

from __future__ import annotations

import logging
from types import TracebackType

from ..exceptions import UnsupportedStorageTypeError
from ..sync.client import SyncClient
from ..sync.config import SyncConfig, SyncConfigStore
from ..sync.connectivity import ConnectivityMonitor
from ..sync.storage import SyncedRecordStorage
from ..sync.tasks import BackgroundTaskQueue
from .base import RecordStorage, StorageConfig, StorageType, validate_collection_name
from .sqlite import SQLiteDatabase, SQLiteRecordStorage

logger = logging.getLogger(__name__)


class StorageFactory:
    """Creates storage handles that share one database and one sync queue.

    The sync configuration is captured when the factory is opened (or
    reloaded). Handles keep the configuration they were built with; call
    ``reload_sync_config`` and create new handles for a change to apply.
    """

    def __init__(
        self,
        config: StorageConfig,
        database: SQLiteDatabase,
        sync_config: SyncConfig | None = None,
        connectivity: ConnectivityMonitor | None = None,
        tasks: BackgroundTaskQueue | None = None,
    ) -> None:
        self.config = config
        self.database = database
        self.sync_config = sync_config or SyncConfig()
        self.connectivity = connectivity or ConnectivityMonitor()
        self.tasks = tasks or BackgroundTaskQueue()
        self.config_store = SyncConfigStore(config.sync_config_path)
        self._handles: list[RecordStorage] = []

    @classmethod
    async def open(
        cls,
        config: StorageConfig | None = None,
        sync_config: SyncConfig | None = None,
        connectivity: ConnectivityMonitor | None = None,
    ) -> StorageFactory:
        """Open the database and load the sync configuration.

        Args:
            config: Storage configuration (defaults from environment)
            sync_config: Explicit sync configuration; read from
                ``config.sync_config_path`` when omitted
            connectivity: Shared reachability signal
        """
        if config is None:
            config = StorageConfig.from_environment()

        database = await SQLiteDatabase.create(config.db_path)
        factory = cls(config, database, sync_config, connectivity)
        if sync_config is None:
            factory.sync_config = await factory.config_store.load()
        logger.info(f"Storage factory opened (sync enabled={factory.sync_config.enabled})")
        return factory

    def create(
        self,
        collection: str,
        storage_type: StorageType | None = None,
        enable_sync: bool | None = None,
    ) -> RecordStorage:
        """Create a storage handle for ``collection``.

        Args:
            collection: Collection name
            storage_type: Local backend (defaults to the configured one)
            enable_sync: Override the configured ``enabled`` flag for this handle

        Raises:
            UnsupportedStorageTypeError: For declared but unimplemented backends
        """
        validate_collection_name(collection)
        storage_type = storage_type or self.config.storage_type

        if storage_type == StorageType.SQLITE:
            local: RecordStorage = SQLiteRecordStorage(self.database, collection)
        else:
            raise UnsupportedStorageTypeError(storage_type.value)

        should_sync = self.sync_config.enabled if enable_sync is None else enable_sync
        if not should_sync:
            return local

        sync_config = self.sync_config
        if not sync_config.enabled:
            sync_config = SyncConfig(True, sync_config.endpoint, sync_config.api_key)

        client = SyncClient(
            collection,
            sync_config,
            connectivity=self.connectivity,
            request_timeout=self.config.request_timeout,
        )
        handle = SyncedRecordStorage(
            local, client, tasks=self.tasks, merge_timeout=self.config.merge_timeout
        )
        self._handles.append(handle)
        return handle

    async def reload_sync_config(self) -> SyncConfig:
        """Re-read the persisted sync configuration for handles created next."""
        self.sync_config = await self.config_store.load()
        return self.sync_config

    async def update_sync_config(self, sync_config: SyncConfig) -> None:
        """Persist a new sync configuration and use it for handles created next."""
        await self.config_store.save(sync_config)
        self.sync_config = sync_config

    async def close(self) -> None:
        """Finish background sync work and release every resource."""
        await self.tasks.close(timeout=self.config.request_timeout)
        for handle in self._handles:
            await handle.close()
        self._handles.clear()
        await self.database.close()
        logger.info("Storage factory closed")

    async def __aenter__(self) -> StorageFactory:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
