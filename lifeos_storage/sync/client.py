"""
Remote sync transport.

Thin HTTP client for the operator-provided sync backend:

    PUT    {endpoint}/{collection}        body {"items": [...]}  (full replace)
    GET    {endpoint}/{collection}        -> {"items": [...]}
    DELETE {endpoint}/{collection}/{id}

Every request optionally carries ``Authorization: Bearer {api_key}``.
Each operation is a no-op when sync is disabled, no endpoint is set, or the
device is offline. Failures are logged and absorbed here: upload and delete
report False, download returns no records.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from urllib.parse import quote

import aiohttp

from ..exceptions import SyncError, SyncHTTPError, ValidationError
from ..logging_utils import StorageLoggerAdapter
from ..records import Record, utc_now
from .config import SyncConfig
from .connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)


@dataclass
class SyncStatus:
    """Point-in-time view of a collection's sync health."""

    enabled: bool
    is_online: bool
    can_sync: bool
    last_sync_time: datetime | None = None
    last_error: str | None = None


class SyncClient:
    """HTTP sync transport for a single collection.

    Example:
        >>> client = SyncClient(
        ...     collection="tasks",
        ...     config=SyncConfig(enabled=True, endpoint="https://sync.example.com"),
        ... )
        >>> await client.upload(records)
        >>> new_records = await client.download(records)
        >>> await client.close()
    """

    def __init__(
        self,
        collection: str,
        config: SyncConfig,
        connectivity: ConnectivityMonitor | None = None,
        session: aiohttp.ClientSession | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        """Initialize the sync client.

        Args:
            collection: Collection name, used as the remote path segment
            config: Sync configuration captured at construction
            connectivity: Reachability signal (defaults to always online)
            session: Shared aiohttp session; created lazily when omitted
            request_timeout: Total seconds allowed per request
        """
        self.collection = collection
        self.config = config
        self.connectivity = connectivity or ConnectivityMonitor()
        self.request_timeout = request_timeout

        self._session = session
        self._owns_session = session is None
        self._last_sync_time: datetime | None = None
        self._last_error: str | None = None
        self._log = StorageLoggerAdapter(logger, {"collection": collection})

    @property
    def collection_url(self) -> str:
        return f"{(self.config.endpoint or '').rstrip('/')}/{quote(self.collection, safe='')}"

    def can_sync(self) -> bool:
        """True when sync is enabled, an endpoint is set and the device is online."""
        return self.config.is_configured and self.connectivity.is_online

    def status(self) -> SyncStatus:
        return SyncStatus(
            enabled=self.config.enabled,
            is_online=self.connectivity.is_online,
            can_sync=self.can_sync(),
            last_sync_time=self._last_sync_time,
            last_error=self._last_error,
        )

    async def upload(self, records: Iterable[Record]) -> bool:
        """Replace the remote snapshot with ``records``.

        Returns:
            True if the backend accepted the snapshot
        """
        if not self.can_sync():
            return False

        items = [record.to_dict() for record in records]
        try:
            await self._request("PUT", self.collection_url, json={"items": items})
        except SyncError as e:
            self._record_failure("upload", e)
            return False

        self._record_success()
        self._log.debug(f"Uploaded {len(items)} record(s)", extra={"operation": "upload"})
        return True

    async def download(self, local_records: Iterable[Record]) -> list[Record]:
        """Fetch the remote snapshot and return records absent locally.

        Remote records whose id already exists in ``local_records`` are
        dropped whatever their timestamps: local always wins.
        """
        if not self.can_sync():
            return []

        try:
            payload = await self._request("GET", self.collection_url)
            remote_records = self._parse_items(payload)
        except SyncError as e:
            self._record_failure("download", e)
            return []

        self._record_success()
        local_ids = {record.id for record in local_records}
        new_records = [r for r in remote_records if r.id not in local_ids]
        skipped = len(remote_records) - len(new_records)
        if skipped:
            self._log.debug(
                f"Kept {skipped} local record(s) over remote copies",
                extra={"operation": "download"},
            )
        return new_records

    async def delete_remote(self, record_id: str) -> bool:
        """Delete one record on the backend."""
        if not self.can_sync():
            return False

        url = f"{self.collection_url}/{quote(record_id, safe='')}"
        try:
            await self._request("DELETE", url)
        except SyncError as e:
            self._record_failure("delete", e, record_id)
            return False

        self._record_success()
        return True

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def _request(self, method: str, url: str, json: Any = None) -> Any:
        """Send one request; raise SyncError on any failure."""
        session = self._get_session()
        try:
            async with session.request(
                method, url, json=json, headers=self._headers(json is not None)
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise SyncHTTPError(response.status, response.reason, self.collection)
                if method != "GET":
                    return None
                return await response.json(content_type=None)
        except SyncError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise SyncError(f"{method} {url} failed", self.collection, e) from e

    def _parse_items(self, payload: Any) -> list[Record]:
        if not isinstance(payload, dict):
            raise SyncError("Malformed sync response: expected an object", self.collection)
        items = payload.get("items") or []
        if not isinstance(items, list):
            raise SyncError("Malformed sync response: 'items' is not a list", self.collection)

        records: list[Record] = []
        for item in items:
            try:
                records.append(Record.from_dict(item))
            except ValidationError as e:
                self._log.warning(
                    f"Skipping malformed remote record: {e}", extra={"operation": "download"}
                )
        return records

    def _record_success(self) -> None:
        self._last_sync_time = utc_now()
        self._last_error = None

    def _record_failure(
        self, operation: str, error: SyncError, record_id: str | None = None
    ) -> None:
        self._last_error = str(error)
        self._log.warning(
            f"Sync {operation} failed: {error}",
            extra={"operation": operation, "record_id": record_id},
        )
