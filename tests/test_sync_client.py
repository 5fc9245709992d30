"""Tests for the HTTP sync transport against an in-process backend."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

from lifeos_storage.records import Record
from lifeos_storage.sync.client import SyncClient
from lifeos_storage.sync.config import SyncConfig
from lifeos_storage.sync.connectivity import ConnectivityMonitor


@pytest.fixture
async def client(sync_config):
    client = SyncClient("tasks", sync_config)
    yield client
    await client.close()


def make_record(record_id: str, title: str, updated_at: datetime | None = None) -> Record:
    now = datetime.now(UTC)
    return Record(
        id=record_id,
        kind="task",
        data={"title": title},
        created_at=now,
        updated_at=updated_at or now,
    )


class TestUpload:
    async def test_upload_replaces_remote_snapshot(self, client, sync_backend) -> None:
        sync_backend.seed("tasks", [make_record("old", "stale")])

        ok = await client.upload([make_record("t1", "A"), make_record("t2", "B")])

        assert ok is True
        assert sync_backend.ids("tasks") == {"t1", "t2"}
        assert ("PUT", "/sync/tasks") in sync_backend.requests

    async def test_sends_bearer_token(self, client, sync_backend) -> None:
        await client.upload([])
        assert sync_backend.auth_headers == ["Bearer secret-token"]

    async def test_no_auth_header_without_api_key(self, sync_backend) -> None:
        client = SyncClient("tasks", SyncConfig(enabled=True, endpoint=sync_backend.endpoint))
        await client.upload([])
        await client.close()
        assert sync_backend.auth_headers == [None]

    async def test_server_error_is_absorbed(self, client, sync_backend) -> None:
        sync_backend.fail_status = 500

        assert await client.upload([make_record("t1", "A")]) is False

        status = client.status()
        assert status.last_error is not None
        assert status.last_sync_time is None

    async def test_failure_log_carries_operation(self, client, sync_backend, caplog) -> None:
        sync_backend.fail_status = 503

        with caplog.at_level(logging.WARNING, logger="lifeos_storage.sync.client"):
            await client.delete_remote("t1")

        record = caplog.records[-1]
        assert record.collection == "tasks"
        assert record.operation == "delete"
        assert record.record_id == "t1"

    async def test_unreachable_endpoint_is_absorbed(self) -> None:
        client = SyncClient(
            "tasks",
            SyncConfig(enabled=True, endpoint="http://127.0.0.1:1/sync"),
            request_timeout=2.0,
        )
        assert await client.upload([make_record("t1", "A")]) is False
        await client.close()


class TestDownload:
    async def test_returns_only_remote_only_records(self, client, sync_backend) -> None:
        local = make_record("a", "local A")
        sync_backend.seed("tasks", [make_record("a", "remote A"), make_record("b", "remote B")])

        result = await client.download([local])

        assert [r.id for r in result] == ["b"]
        assert result[0].data == {"title": "remote B"}

    async def test_newer_remote_copy_is_still_dropped(self, client, sync_backend) -> None:
        local = make_record("x", "local", updated_at=datetime(2024, 1, 1, tzinfo=UTC))
        remote = make_record("x", "remote", updated_at=datetime(2024, 1, 1, tzinfo=UTC) + timedelta(days=30))
        sync_backend.seed("tasks", [remote])

        assert await client.download([local]) == []

    async def test_server_error_returns_empty(self, client, sync_backend) -> None:
        sync_backend.seed("tasks", [make_record("b", "B")])
        sync_backend.fail_status = 503

        assert await client.download([]) == []

    async def test_malformed_response_returns_empty(self, client, sync_backend) -> None:
        sync_backend.malformed = True
        assert await client.download([]) == []

    async def test_malformed_items_are_skipped(self, client, sync_backend) -> None:
        sync_backend.collections["tasks"] = [
            {"id": "", "title": "no id"},
            make_record("ok", "fine").to_dict(),
        ]

        result = await client.download([])

        assert [r.id for r in result] == ["ok"]

    async def test_success_updates_status(self, client) -> None:
        await client.download([])
        status = client.status()
        assert status.last_sync_time is not None
        assert status.can_sync is True


class TestDeleteRemote:
    async def test_deletes_record(self, client, sync_backend) -> None:
        sync_backend.seed("tasks", [make_record("t1", "A"), make_record("t2", "B")])

        assert await client.delete_remote("t1") is True

        assert sync_backend.ids("tasks") == {"t2"}
        assert ("DELETE", "/sync/tasks/t1") in sync_backend.requests

    async def test_not_found_is_absorbed(self, client, sync_backend) -> None:
        assert await client.delete_remote("missing") is False


class TestSyncConditions:
    async def test_disabled_sends_nothing(self, sync_backend) -> None:
        client = SyncClient("tasks", SyncConfig(enabled=False, endpoint=sync_backend.endpoint))

        assert await client.upload([make_record("t1", "A")]) is False
        assert await client.download([]) == []
        assert await client.delete_remote("t1") is False
        assert sync_backend.requests == []
        await client.close()

    async def test_missing_endpoint_sends_nothing(self) -> None:
        client = SyncClient("tasks", SyncConfig(enabled=True))
        assert client.can_sync() is False
        assert await client.upload([]) is False

    async def test_offline_sends_nothing(self, sync_config, sync_backend) -> None:
        connectivity = ConnectivityMonitor(online=False)
        client = SyncClient("tasks", sync_config, connectivity=connectivity)

        assert await client.upload([make_record("t1", "A")]) is False
        assert sync_backend.requests == []
        assert client.status().is_online is False

        connectivity.set_online(True)
        assert await client.upload([make_record("t1", "A")]) is True
        await client.close()
