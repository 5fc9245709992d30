"""
Record storage.

Example:
    >>> from lifeos_storage.storage import StorageConfig, StorageFactory
    >>> factory = await StorageFactory.open(StorageConfig(db_path="lifeos.db"))
    >>> habits = factory.create("habits")
"""

from .base import RecordStorage, StorageConfig, StorageType, validate_collection_name
from .factory import StorageFactory
from .sqlite import SQLiteDatabase, SQLiteRecordStorage

__all__ = [
    "RecordStorage",
    "SQLiteDatabase",
    "SQLiteRecordStorage",
    "StorageConfig",
    "StorageFactory",
    "StorageType",
    "validate_collection_name",
]
