"""
Storage-aware logging.

Stores, sync handles and the offline cache log through
``logging.getLogger(__name__)``. Per-collection components wrap their logger
in a ``StorageLoggerAdapter`` bound to the collection, and call sites pass the
operation (and record id or cache bucket where one applies) as ``extra``.

``StructuredJsonFormatter`` renders those fields as a ``context`` object so
a host can ship storage logs to a collector and filter by collection or
operation. The library never installs handlers itself.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes lifted from a log record into the JSON "context" object
CONTEXT_FIELDS = ("collection", "operation", "record_id", "bucket")


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields: timestamp (UTC ISO 8601), level, logger, message, ``context``
    holding whichever of ``CONTEXT_FIELDS`` the record carries, and
    ``exception`` when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {
            key: getattr(record, key)
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        }
        if context:
            log_obj["context"] = context

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class StorageLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter stamping bound storage context (e.g. collection) on records.

    Per-call ``extra`` takes precedence over the bound context, and neither
    dict is modified.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "StorageLoggerAdapter":
        """Return an adapter on the same logger with extra bound context."""
        return StorageLoggerAdapter(self.logger, {**self.extra, **context})
