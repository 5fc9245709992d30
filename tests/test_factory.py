"""Tests for the storage factory."""

from __future__ import annotations

import json

import pytest

from lifeos_storage.exceptions import UnsupportedStorageTypeError, ValidationError
from lifeos_storage.records import Record
from lifeos_storage.storage.base import StorageConfig, StorageType
from lifeos_storage.storage.factory import StorageFactory
from lifeos_storage.storage.sqlite import SQLiteRecordStorage
from lifeos_storage.sync.config import SyncConfig
from lifeos_storage.sync.storage import SyncedRecordStorage


@pytest.fixture
def storage_config(temp_dir):
    return StorageConfig(
        db_path=":memory:",
        sync_config_path=temp_dir / "sync-config.json",
        merge_timeout=5.0,
    )


class TestStorageConfig:
    def test_defaults(self) -> None:
        config = StorageConfig()
        assert config.storage_type == StorageType.SQLITE
        assert str(config.db_path).endswith("lifeos.db")
        assert config.merge_timeout == 2.0

    def test_from_environment(self, monkeypatch, temp_dir) -> None:
        monkeypatch.setenv("LIFEOS_DB_PATH", str(temp_dir / "env.db"))
        monkeypatch.setenv("LIFEOS_MERGE_TIMEOUT", "0.5")

        config = StorageConfig.from_environment()

        assert config.db_path == str(temp_dir / "env.db")
        assert config.merge_timeout == 0.5


class TestStorageFactory:
    async def test_sync_disabled_returns_local_store(self, storage_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            handle = factory.create("tasks")
            assert isinstance(handle, SQLiteRecordStorage)
            assert factory.sync_config == SyncConfig()

    async def test_sync_enabled_wraps_local_store(self, storage_config, sync_config) -> None:
        async with await StorageFactory.open(storage_config, sync_config=sync_config) as factory:
            handle = factory.create("habits")
            assert isinstance(handle, SyncedRecordStorage)
            assert handle.collection == "habits"
            assert handle.client.collection == "habits"

    async def test_reads_persisted_config(self, storage_config, sync_backend) -> None:
        storage_config.sync_config_path.write_text(
            json.dumps({"enabled": True, "endpoint": sync_backend.endpoint})
        )
        async with await StorageFactory.open(storage_config) as factory:
            assert isinstance(factory.create("tasks"), SyncedRecordStorage)

    async def test_enable_sync_override(self, storage_config, sync_config) -> None:
        async with await StorageFactory.open(storage_config, sync_config=sync_config) as factory:
            assert isinstance(factory.create("tasks", enable_sync=False), SQLiteRecordStorage)

        disabled = SyncConfig(enabled=False, endpoint=sync_config.endpoint)
        async with await StorageFactory.open(storage_config, sync_config=disabled) as factory:
            handle = factory.create("tasks", enable_sync=True)
            assert isinstance(handle, SyncedRecordStorage)
            assert handle.client.can_sync() is True

    async def test_unsupported_storage_types(self, storage_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            with pytest.raises(UnsupportedStorageTypeError):
                factory.create("tasks", storage_type=StorageType.LOCAL_STORAGE)
            with pytest.raises(UnsupportedStorageTypeError):
                factory.create("tasks", storage_type=StorageType.API)

    async def test_rejects_bad_collection_name(self, storage_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            with pytest.raises(ValidationError):
                factory.create("../tasks")

    async def test_config_change_needs_new_handle(self, storage_config, sync_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            before = factory.create("tasks")

            await factory.update_sync_config(sync_config)
            after = factory.create("tasks")

            assert isinstance(before, SQLiteRecordStorage)
            assert isinstance(after, SyncedRecordStorage)

            # A synced handle keeps the config it was built with
            await factory.update_sync_config(SyncConfig())
            assert after.client.config == sync_config
            assert isinstance(factory.create("tasks"), SQLiteRecordStorage)

    async def test_reload_sync_config(self, storage_config, sync_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            storage_config.sync_config_path.write_text(json.dumps(sync_config.to_dict()))

            assert await factory.reload_sync_config() == sync_config
            assert isinstance(factory.create("tasks"), SyncedRecordStorage)

    async def test_handles_share_database(self, storage_config) -> None:
        async with await StorageFactory.open(storage_config) as factory:
            first = factory.create("tasks")
            second = factory.create("tasks")

            await first.save(Record(id="t1"))

            assert await second.get_by_id("t1") is not None

    async def test_tasks_example_through_sync(self, storage_config, sync_config, sync_backend) -> None:
        async with await StorageFactory.open(storage_config, sync_config=sync_config) as factory:
            tasks = factory.create("tasks")
            assert await tasks.get_all() == []

            await tasks.save(Record(id="t1", data={"title": "A"}))
            await factory.tasks.drain()
            assert [r.id for r in await tasks.get_all()] == ["t1"]

            assert await tasks.delete("t1") is True
            await factory.tasks.drain()
            assert await tasks.get_all() == []
            assert await tasks.delete("t1") is False

        # close() drained the background uploads and deletes
        assert sync_backend.count("PUT") >= 1
        assert sync_backend.count("DELETE") == 1
        assert sync_backend.ids("tasks") == set()

    async def test_close_releases_database(self, storage_config) -> None:
        factory = await StorageFactory.open(storage_config)
        await factory.close()
        assert factory.database.conn is None
        assert factory.tasks.closed is True
