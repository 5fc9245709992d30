"""
Abstract record storage interface.

Defines the contract every storage handle satisfies, whether it is a bare
local store or a local store wrapped with background sync.
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..exceptions import ValidationError
from ..records import Record

COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_collection_name(name: str) -> str:
    """Return ``name`` if it is a usable collection name, else raise."""
    if not isinstance(name, str) or not COLLECTION_NAME_PATTERN.match(name):
        raise ValidationError("collection", "must match [A-Za-z0-9_-]+", repr(name))
    return name


class StorageType(Enum):
    """Local storage backends.

    SQLITE: On-device structured store (the only implemented backend)
    LOCAL_STORAGE: Flat key-value store (declared, not implemented)
    API: Remote-only storage (declared, not implemented)
    """

    SQLITE = "sqlite"
    LOCAL_STORAGE = "localstorage"
    API = "api"


def _default_home() -> Path:
    return Path.home() / ".lifeos"


@dataclass
class StorageConfig:
    """Configuration for record storage.

    Configuration can be provided directly or via environment variables:

    Environment Variables:
        LIFEOS_DB_PATH: SQLite database path (default: ~/.lifeos/lifeos.db)
        LIFEOS_SYNC_CONFIG_PATH: Sync config JSON path
            (default: ~/.lifeos/sync-config.json)
        LIFEOS_MERGE_TIMEOUT: Seconds get_all waits for a remote merge
        LIFEOS_REQUEST_TIMEOUT: Seconds before a sync request is abandoned

    Attributes:
        db_path: Path of the SQLite database, or ":memory:"
        storage_type: Which local backend to build
        sync_config_path: Where the persisted sync configuration lives
        merge_timeout: How long get_all waits for remote records before
            returning local results alone
        request_timeout: Total timeout for one sync HTTP request
    """

    db_path: str | Path = field(default_factory=lambda: _default_home() / "lifeos.db")
    storage_type: StorageType = StorageType.SQLITE
    sync_config_path: str | Path = field(
        default_factory=lambda: _default_home() / "sync-config.json"
    )
    merge_timeout: float = 2.0
    request_timeout: float = 10.0

    # Additional options
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_environment(cls) -> StorageConfig:
        """Create configuration from environment variables."""
        defaults = cls()
        return cls(
            db_path=os.environ.get("LIFEOS_DB_PATH", defaults.db_path),
            sync_config_path=os.environ.get(
                "LIFEOS_SYNC_CONFIG_PATH", defaults.sync_config_path
            ),
            merge_timeout=float(
                os.environ.get("LIFEOS_MERGE_TIMEOUT", defaults.merge_timeout)
            ),
            request_timeout=float(
                os.environ.get("LIFEOS_REQUEST_TIMEOUT", defaults.request_timeout)
            ),
        )


class RecordStorage(ABC):
    """Abstract interface for a collection's storage handle.

    All operations are coroutines. Writes are durable before they return.
    """

    collection: str

    @abstractmethod
    async def get_all(self) -> list[Record]:
        """Return every record in the collection (no guaranteed order)."""
        ...

    @abstractmethod
    async def get_by_id(self, record_id: str) -> Record | None:
        """Return the record with ``record_id``, or None if absent."""
        ...

    @abstractmethod
    async def save(self, record: Record) -> Record:
        """Insert or update a record.

        Returns:
            The record as persisted, with store-assigned timestamps

        Raises:
            StorageIOError: If the write fails
        """
        ...

    @abstractmethod
    async def insert_if_absent(self, record: Record) -> Record | None:
        """Insert a record only if its id is not already stored.

        The existence check and the insert happen as one write, so a
        concurrent ``save`` of the same id is never overwritten.

        Returns:
            The persisted record, or None if the id already existed
        """
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was removed, False if none existed
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record in the collection."""
        ...

    async def close(self) -> None:
        """Release resources held by this handle (no-op by default)."""
        return None
