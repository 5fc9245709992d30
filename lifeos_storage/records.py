"""
Record contract shared by every collection.

A record is a uniquely identified, timestamped unit of domain data. The
storage layer owns ``id``, ``kind`` and the two timestamps; everything else
lives in ``data`` and is opaque to it.

Several record kinds may share one collection (for example one-off and
recurring transactions in ``finances``). The ``kind`` field is the explicit
tag used to tell them apart.
"""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .exceptions import ValidationError

DEFAULT_KIND = "record"

# Keys owned by the contract; never stored inside ``data``.
RESERVED_KEYS = frozenset({"id", "kind", "createdAt", "updatedAt"})

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def generate_id() -> str:
    """Generate a new record id: ``{epoch_millis}-{9 random chars}``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) into aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(field_name, "not an ISO-8601 timestamp", value) from None
    else:
        raise ValidationError(field_name, "expected ISO-8601 string", repr(value))

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    """Format a datetime for the wire (ISO-8601, ``Z`` suffix)."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass
class Record:
    """A stored entity.

    Attributes:
        id: Non-empty identifier, unique within its collection
        kind: Variant tag for collections holding more than one record shape
        data: Domain payload (opaque to the storage layer)
        created_at: Set once on first persistence
        updated_at: Set by the store on every successful write
    """

    id: str
    kind: str = DEFAULT_KIND
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValidationError("id", "must be a non-empty string", repr(self.id))
        if not isinstance(self.data, dict):
            raise ValidationError("data", "must be a dict", repr(self.data))
        clash = RESERVED_KEYS.intersection(self.data)
        if clash:
            raise ValidationError("data", f"reserved keys in payload: {sorted(clash)}")

    @classmethod
    def new(cls, kind: str = DEFAULT_KIND, **data: Any) -> Record:
        """Create an unsaved record with a freshly generated id."""
        return cls(id=generate_id(), kind=kind, data=data)

    def with_timestamps(
        self,
        created_at: datetime | None,
        updated_at: datetime | None,
    ) -> Record:
        """Return a copy carrying the given timestamps."""
        return replace(self, data=dict(self.data), created_at=created_at, updated_at=updated_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the flat wire/storage shape."""
        result: dict[str, Any] = dict(self.data)
        result["id"] = self.id
        result["kind"] = self.kind
        result["createdAt"] = format_timestamp(self.created_at)
        result["updatedAt"] = format_timestamp(self.updated_at)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Deserialize from the flat wire/storage shape."""
        if not isinstance(data, dict):
            raise ValidationError("record", "expected a JSON object", repr(data))
        payload = {k: v for k, v in data.items() if k not in RESERVED_KEYS}
        return cls(
            id=data.get("id", ""),
            kind=data.get("kind") or DEFAULT_KIND,
            data=payload,
            created_at=parse_timestamp(data.get("createdAt"), "createdAt"),
            updated_at=parse_timestamp(data.get("updatedAt"), "updatedAt"),
        )


def filter_kind(records: Iterable[Record], kind: str) -> list[Record]:
    """Select records by their ``kind`` tag."""
    return [r for r in records if r.kind == kind]
