"""
SQLite record storage.

The on-device structured store. One database file holds every collection;
each collection is a partition of the ``records`` table keyed by
``(collection, id)``. Every write commits before returning.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import StorageIOError
from ..logging_utils import StorageLoggerAdapter
from ..records import Record, parse_timestamp, utc_now
from .base import RecordStorage, validate_collection_name

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ("id", "kind", "data", "created_at", "updated_at")

_CREATE_RECORDS_SQL = """
CREATE TABLE IF NOT EXISTS records (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    kind TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (collection, id)
)
"""

_INSERT_SQL = """
INSERT INTO records (collection, id, kind, data, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?)
"""

_UPSERT_SQL = _INSERT_SQL + """
ON CONFLICT (collection, id) DO UPDATE SET
    kind = excluded.kind,
    data = excluded.data,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at
"""

_INSERT_IF_ABSENT_SQL = _INSERT_SQL + "ON CONFLICT (collection, id) DO NOTHING\n"


class SQLiteDatabase:
    """Shared aiosqlite connection for all collections.

    Write operations are serialized with a lock so that read-modify-write
    sequences from interleaved coroutines do not overlap.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        self.conn: aiosqlite.Connection | None = None
        self.write_lock = asyncio.Lock()
        self._initialized = False

    @classmethod
    async def create(cls, db_path: str | Path = ":memory:") -> SQLiteDatabase:
        """Create and initialize a database."""
        database = cls(db_path)
        await database.initialize()
        return database

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        if self._initialized:
            return

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = await aiosqlite.connect(self.db_path)
            await self.conn.execute("PRAGMA journal_mode = WAL")
            await self.conn.execute("PRAGMA synchronous = FULL")
            await self.conn.execute(_CREATE_RECORDS_SQL)
            await self.conn.commit()
            self._initialized = True
            logger.info(f"SQLite database initialized: {self.db_path}")
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Failed to open SQLite database {self.db_path}: {e}")
            raise StorageIOError("initialize", self.db_path, e) from e

    async def close(self) -> None:
        """Close the connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None
        self._initialized = False

    def connection(self, operation: str) -> aiosqlite.Connection:
        """Return the open connection or raise StorageIOError."""
        if self.conn is None:
            raise StorageIOError(operation, self.db_path, RuntimeError("Not initialized"))
        return self.conn


def _row_to_record(row: Any) -> Record:
    record_id, kind, data_json, created_at, updated_at = row
    return Record(
        id=record_id,
        kind=kind,
        data=json.loads(data_json),
        created_at=parse_timestamp(created_at, "created_at"),
        updated_at=parse_timestamp(updated_at, "updated_at"),
    )


class SQLiteRecordStorage(RecordStorage):
    """Local store for one collection, backed by SQLite.

    ``save`` is an upsert:
    - New ids are inserted with ``created_at`` defaulted to now when unset.
    - Existing ids keep their stored ``created_at``.
    - ``updated_at`` is always assigned by the store and never moves
      backwards for a given id.
    """

    def __init__(self, database: SQLiteDatabase, collection: str) -> None:
        self.database = database
        self.collection = validate_collection_name(collection)
        self._log = StorageLoggerAdapter(logger, {"collection": self.collection})

    async def get_all(self) -> list[Record]:
        conn = self.database.connection("get_all")
        try:
            async with conn.execute(
                f"SELECT {', '.join(RECORD_COLUMNS)} FROM records WHERE collection = ?",
                (self.collection,),
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise self._io_error("get_all", e) from e
        return [_row_to_record(row) for row in rows]

    async def get_by_id(self, record_id: str) -> Record | None:
        conn = self.database.connection("get_by_id")
        try:
            return await self._fetch(conn, record_id)
        except aiosqlite.Error as e:
            raise self._io_error("get_by_id", e, record_id) from e

    async def save(self, record: Record) -> Record:
        conn = self.database.connection("save")
        async with self.database.write_lock:
            try:
                existing = await self._fetch(conn, record.id)
                now = utc_now()
                if existing is None:
                    created_at = record.created_at or now
                    updated_at = now
                else:
                    created_at = existing.created_at or record.created_at or now
                    previous = existing.updated_at
                    updated_at = now if previous is None or now >= previous else previous

                saved = record.with_timestamps(created_at, updated_at)
                await self._write(conn, saved, _UPSERT_SQL)
                await conn.commit()
            except (aiosqlite.Error, TypeError, ValueError) as e:
                await self._rollback(conn)
                raise self._io_error("save", e, record.id) from e

        return saved

    async def insert_if_absent(self, record: Record) -> Record | None:
        conn = self.database.connection("insert_if_absent")
        async with self.database.write_lock:
            try:
                now = utc_now()
                saved = record.with_timestamps(record.created_at or now, now)
                inserted = await self._write(conn, saved, _INSERT_IF_ABSENT_SQL)
                await conn.commit()
            except (aiosqlite.Error, TypeError, ValueError) as e:
                await self._rollback(conn)
                raise self._io_error("insert_if_absent", e, record.id) from e

        if not inserted:
            self._log.debug(
                f"Kept existing {record.id}",
                extra={"operation": "insert_if_absent", "record_id": record.id},
            )
            return None
        return saved

    async def delete(self, record_id: str) -> bool:
        conn = self.database.connection("delete")
        async with self.database.write_lock:
            try:
                cursor = await conn.execute(
                    "DELETE FROM records WHERE collection = ? AND id = ?",
                    (self.collection, record_id),
                )
                deleted = cursor.rowcount > 0
                await cursor.close()
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise self._io_error("delete", e, record_id) from e
        return deleted

    async def clear(self) -> None:
        conn = self.database.connection("clear")
        async with self.database.write_lock:
            try:
                await conn.execute(
                    "DELETE FROM records WHERE collection = ?", (self.collection,)
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise self._io_error("clear", e) from e

    async def _fetch(self, conn: aiosqlite.Connection, record_id: str) -> Record | None:
        async with conn.execute(
            f"SELECT {', '.join(RECORD_COLUMNS)} FROM records "
            "WHERE collection = ? AND id = ?",
            (self.collection, record_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def _write(self, conn: aiosqlite.Connection, record: Record, sql: str) -> bool:
        """Run an insert statement for ``record``; True if a row changed."""
        cursor = await conn.execute(
            sql,
            (
                self.collection,
                record.id,
                record.kind,
                json.dumps(record.data),
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
            ),
        )
        changed = cursor.rowcount > 0
        await cursor.close()
        return changed

    def _io_error(
        self, operation: str, error: Exception, record_id: str | None = None
    ) -> StorageIOError:
        target = f"{self.collection}/{record_id}" if record_id else self.collection
        self._log.error(
            f"{operation} failed for {target}: {error}",
            extra={"operation": operation, "record_id": record_id},
        )
        return StorageIOError(operation, target, error)

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except aiosqlite.Error as e:
            self._log.warning(f"Rollback failed: {e}", extra={"operation": "rollback"})
