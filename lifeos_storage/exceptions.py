"""
Custom exceptions for LifeOS storage.

Local-path errors propagate to callers. Sync-path and cache steady-state
errors are raised internally and absorbed at the boundary where they occur.
"""


class LifeOSStorageError(Exception):
    """Base exception for all storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageIOError(LifeOSStorageError):
    """Raised when a local storage operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class ValidationError(LifeOSStorageError):
    """Raised when record validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class UnsupportedStorageTypeError(LifeOSStorageError):
    """Raised when a declared storage type has no implementation."""

    def __init__(self, storage_type: str):
        super().__init__(
            f"Storage type not implemented: {storage_type}",
            {"storage_type": storage_type},
        )
        self.storage_type = storage_type


class SyncError(LifeOSStorageError):
    """Raised when a remote sync request fails."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {}
        if collection:
            details["collection"] = collection
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.collection = collection
        self.cause = cause


class SyncHTTPError(SyncError):
    """Raised when the sync backend answers with a non-success status."""

    def __init__(self, status: int, reason: str | None = None, collection: str | None = None):
        super().__init__(f"Sync request failed: {status} {reason or ''}".rstrip(), collection)
        self.details["status"] = status
        self.status = status
        self.reason = reason


class ConfigurationError(LifeOSStorageError):
    """Raised when the persisted sync configuration cannot be written."""

    def __init__(self, path: str, cause: Exception | None = None):
        details = {"path": path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Configuration error: {path}", details)
        self.path = path
        self.cause = cause


class CachePopulationError(LifeOSStorageError):
    """Raised when an offline cache bucket cannot be fully populated."""

    def __init__(self, bucket: str, url: str, cause: Exception | None = None):
        details = {"bucket": bucket, "url": url}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Failed to cache {url} into {bucket}", details)
        self.bucket = bucket
        self.url = url
        self.cause = cause


class NetworkError(LifeOSStorageError):
    """Raised by a fetcher when the network cannot be reached.

    Note: Named NetworkError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, url: str, cause: Exception | None = None):
        details = {"url": url}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Network request failed: {url}", details)
        self.url = url
        self.cause = cause
