"""
Local-first storage with background sync.

Wraps a local store and a sync transport for one collection:
- Writes go to LOCAL first and return once they are durable
- Uploads/deletes to the backend run as detached background tasks
- Reads come from local; remote-only records are imported on ``get_all``
- A record present both locally and remotely is never overwritten from
  remote, whatever the timestamps say

Uploads are full-snapshot replaces, so two uploads finishing out of order
still leave the backend holding a complete snapshot.
"""

from __future__ import annotations

import asyncio
import logging

from ..exceptions import LifeOSStorageError
from ..logging_utils import StorageLoggerAdapter
from ..records import Record
from ..storage.base import RecordStorage
from .client import SyncClient, SyncStatus
from .tasks import BackgroundTaskQueue

logger = logging.getLogger(__name__)


class SyncedRecordStorage(RecordStorage):
    """Storage handle layering optional replication over a local store."""

    def __init__(
        self,
        local: RecordStorage,
        client: SyncClient,
        tasks: BackgroundTaskQueue | None = None,
        merge_timeout: float | None = 2.0,
    ) -> None:
        """Initialize synced storage.

        Args:
            local: Authoritative local store for the collection
            client: Sync transport bound to the same collection
            tasks: Queue running fire-and-forget sync work
            merge_timeout: Seconds ``get_all`` waits for remote records before
                returning local results alone (None waits for the download)
        """
        self.local = local
        self.client = client
        self.collection = local.collection
        self.tasks = tasks or BackgroundTaskQueue()
        self.merge_timeout = merge_timeout
        self._log = StorageLoggerAdapter(logger, {"collection": self.collection})
        self._merge_log = self._log.bind(operation="merge")

    async def get_all(self) -> list[Record]:
        """Read local records, importing remote-only ones when possible.

        Remote records that arrive after ``merge_timeout`` are still imported
        into the local store, but only show up on a later call.
        """
        records = await self.local.get_all()
        if not self.client.can_sync():
            return records

        merge = asyncio.ensure_future(self._import_remote(records))
        done, _ = await asyncio.wait({merge}, timeout=self.merge_timeout)
        if merge in done:
            error = merge.exception()
            if error is None:
                records.extend(merge.result())
            else:
                self._merge_log.warning(f"Remote merge failed: {error}")
        else:
            self._merge_log.debug("Remote merge still running, finishing in background")
            self.tasks.spawn(self._await_merge(merge), f"merge {self.collection}")
        return records

    async def get_by_id(self, record_id: str) -> Record | None:
        return await self.local.get_by_id(record_id)

    async def save(self, record: Record) -> Record:
        """Save locally, then upload the collection snapshot in the background."""
        saved = await self.local.save(record)

        if self.client.can_sync():
            self.tasks.spawn(self._upload_snapshot(), f"upload {self.collection}")
        return saved

    async def insert_if_absent(self, record: Record) -> Record | None:
        """Import into the local store only; nothing is uploaded."""
        return await self.local.insert_if_absent(record)

    async def delete(self, record_id: str) -> bool:
        """Delete locally, then delete remotely in the background."""
        deleted = await self.local.delete(record_id)

        if deleted and self.client.can_sync():
            self.tasks.spawn(
                self.client.delete_remote(record_id),
                f"delete {self.collection}/{record_id}",
            )
        return deleted

    async def clear(self) -> None:
        """Clear local records only; remote data is left untouched."""
        await self.local.clear()

    async def close(self) -> None:
        await self.client.close()

    def status(self) -> SyncStatus:
        return self.client.status()

    async def force_sync(self) -> bool:
        """Upload the current snapshot now and wait for the result."""
        if not self.client.can_sync():
            return False
        snapshot = await self.local.get_all()
        return await self.client.upload(snapshot)

    async def _upload_snapshot(self) -> None:
        snapshot = await self.local.get_all()
        await self.client.upload(snapshot)

    async def _import_remote(self, local_records: list[Record]) -> list[Record]:
        """Persist remote-only records locally and return them."""
        imported: list[Record] = []
        candidates = await self.client.download(local_records)
        for remote in candidates:
            try:
                # A local write may land while the download is in flight
                saved = await self.local.insert_if_absent(remote)
            except LifeOSStorageError as e:
                self._merge_log.warning(
                    f"Failed to import remote record {remote.id}: {e}",
                    extra={"record_id": remote.id},
                )
                continue
            if saved is not None:
                imported.append(saved)
        if imported:
            self._merge_log.info(f"Imported {len(imported)} remote record(s)")
        return imported

    async def _await_merge(self, merge: asyncio.Future[list[Record]]) -> None:
        await merge
