"""
Shared test configuration and fixtures.

Provides:
- In-memory SQLite database and per-collection local stores
- A fake sync backend served by aiohttp's in-process test server
- A scriptable sync client double for timing-sensitive orchestrator tests
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from lifeos_storage.records import Record
from lifeos_storage.storage.sqlite import SQLiteDatabase, SQLiteRecordStorage
from lifeos_storage.sync.client import SyncStatus
from lifeos_storage.sync.config import SyncConfig

logger = logging.getLogger(__name__)


class FakeSyncBackend:
    """
    In-memory implementation of the sync HTTP protocol.

    PUT replaces a collection, GET returns it, DELETE removes one item.
    ``fail_status`` forces every request to answer with that status and
    ``delay`` slows every request down.
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[tuple[str, str]] = []
        self.auth_headers: list[str | None] = []
        self.fail_status: int | None = None
        self.malformed = False
        self.delay = 0.0

    def make_app(self) -> web.Application:
        app = web.Application(middlewares=[self._middleware])
        app.router.add_put("/sync/{collection}", self._put)
        app.router.add_get("/sync/{collection}", self._get)
        app.router.add_delete("/sync/{collection}/{record_id}", self._delete)
        return app

    def seed(self, collection: str, records: list[Record]) -> None:
        self.collections[collection] = [r.to_dict() for r in records]

    def ids(self, collection: str) -> set[str]:
        return {item["id"] for item in self.collections.get(collection, [])}

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.requests if m == method)

    @web.middleware
    async def _middleware(self, request: web.Request, handler):
        self.requests.append((request.method, request.path))
        self.auth_headers.append(request.headers.get("Authorization"))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_status is not None:
            return web.Response(status=self.fail_status, text="forced failure")
        return await handler(request)

    async def _put(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.collections[request.match_info["collection"]] = list(body["items"])
        return web.json_response({"ok": True})

    async def _get(self, request: web.Request) -> web.Response:
        if self.malformed:
            return web.Response(text="not json", content_type="text/plain")
        items = self.collections.get(request.match_info["collection"], [])
        return web.json_response({"items": items})

    async def _delete(self, request: web.Request) -> web.Response:
        collection = request.match_info["collection"]
        record_id = request.match_info["record_id"]
        items = self.collections.get(collection, [])
        remaining = [item for item in items if item["id"] != record_id]
        if len(remaining) == len(items):
            return web.Response(status=404)
        self.collections[collection] = remaining
        return web.Response(status=204)


class FakeSyncClient:
    """
    Scriptable stand-in for SyncClient.

    ``upload_delay`` / ``download_delay`` simulate a slow network; when
    ``fail`` is set, operations raise after the delay.
    """

    def __init__(self, collection: str = "tasks") -> None:
        self.collection = collection
        self.online = True
        self.remote: list[Record] = []
        self.upload_delay = 0.0
        self.download_delay = 0.0
        self.fail = False
        self.uploads: list[list[Record]] = []
        self.deleted: list[str] = []
        self.upload_started = 0
        self.closed = False

    def can_sync(self) -> bool:
        return self.online

    def status(self) -> SyncStatus:
        return SyncStatus(enabled=True, is_online=self.online, can_sync=self.online)

    async def upload(self, records: list[Record]) -> bool:
        self.upload_started += 1
        await asyncio.sleep(self.upload_delay)
        if self.fail:
            raise RuntimeError("simulated upload failure")
        self.uploads.append(list(records))
        return True

    async def download(self, local_records: list[Record]) -> list[Record]:
        await asyncio.sleep(self.download_delay)
        if self.fail:
            raise RuntimeError("simulated download failure")
        local_ids = {r.id for r in local_records}
        return [r for r in self.remote if r.id not in local_ids]

    async def delete_remote(self, record_id: str) -> bool:
        if self.fail:
            raise RuntimeError("simulated delete failure")
        self.deleted.append(record_id)
        return True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def database():
    """In-memory SQLite database shared by the collections of one test."""
    db = await SQLiteDatabase.create(":memory:")
    yield db
    await db.close()


@pytest.fixture
async def local_store(database):
    """Local store for the 'tasks' collection."""
    return SQLiteRecordStorage(database, "tasks")


@pytest.fixture
async def sync_backend():
    """Fake sync backend running on a local port."""
    backend = FakeSyncBackend()
    server = TestServer(backend.make_app())
    await server.start_server()
    backend.endpoint = str(server.make_url("/sync"))
    yield backend
    await server.close()


@pytest.fixture
def sync_config(sync_backend):
    """Enabled sync configuration pointing at the fake backend."""
    return SyncConfig(enabled=True, endpoint=sync_backend.endpoint, api_key="secret-token")


@pytest.fixture
def fake_client():
    return FakeSyncClient()
