"""
Quest board data model.

Quests and markers carry a small typed core (id, timestamps, and for quests the
status) plus an open mapping of whatever else the client sent. The extra fields
are copied through verbatim so older clients and newer clients can share one
data file.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


DEFAULT_CATEGORIES: List[str] = ["design", "programming", "marketing", "writing", "other"]

# Keys owned by the server; never taken from a client payload.
RESERVED_KEYS = ("id", "createdAt", "updatedAt")


class QuestStatus(Enum):
    """Quest statuses the stats know about. Any other string is tolerated."""
    OPEN = "open"
    TAKEN = "taken"


def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision (browser Date compatible)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    """Opaque random 128-bit identifier."""
    return uuid.uuid4().hex


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed). Returns None when unparseable."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Record:
    """Common identity for quests and markers."""
    id: Any = None
    created_at: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> Any:
        return self.fields.get("title")

    @classmethod
    def _split_payload(cls, payload: Any) -> Dict[str, Any]:
        # Raises TypeError/ValueError for non-mapping payloads; callers log it.
        data = dict(payload)
        for key in RESERVED_KEYS:
            data.pop(key, None)
        return data

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.fields)
        data["id"] = self.id
        data["createdAt"] = self.created_at
        return data


@dataclass
class Quest(Record):
    """A task listing. ``status`` is free-form; ``open`` and ``taken`` are counted."""
    status: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def user(self) -> Any:
        return self.fields.get("user")

    @classmethod
    def create(cls, payload: Any) -> "Quest":
        """Build a new quest from a client payload, assigning id and createdAt."""
        data = cls._split_payload(payload)
        status = data.pop("status", None)
        return cls(id=new_id(), created_at=utc_now(), status=status, fields=data)

    def set_status(self, status: Optional[str]) -> None:
        self.status = status
        self.updated_at = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.status is not None:
            data["status"] = self.status
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quest":
        """Deserialize from the durability format."""
        extra = {k: v for k, v in data.items() if k not in RESERVED_KEYS and k != "status"}
        return cls(
            id=data.get("id"),
            created_at=data.get("createdAt"),
            status=data.get("status"),
            updated_at=data.get("updatedAt"),
            fields=extra,
        )


@dataclass
class Marker(Record):
    """A geotagged note. The payload is opaque apart from id and createdAt."""

    @classmethod
    def create(cls, payload: Any) -> "Marker":
        return cls(id=new_id(), created_at=utc_now(), fields=cls._split_payload(payload))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Marker":
        extra = {k: v for k, v in data.items() if k not in ("id", "createdAt")}
        return cls(id=data.get("id"), created_at=data.get("createdAt"), fields=extra)


@dataclass
class Analytics:
    """Process-wide counters mirrored to the data file."""
    total_connections: int = 0
    last_updated: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalConnections": self.total_connections,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Analytics":
        analytics = cls()
        total = data.get("totalConnections")
        if isinstance(total, int):
            analytics.total_connections = total
        if isinstance(data.get("lastUpdated"), str):
            analytics.last_updated = data["lastUpdated"]
        return analytics
