"""
Connected-session tracking for the realtime gateway.

Admin classification is a referrer heuristic evaluated once at connect time.
It is not an authorization boundary.
"""
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .schema import utc_now

ADMIN_REFERRER_MARKERS = ("/admin", "?admin=true", "#admin")


def is_admin_referrer(referrer: Optional[str]) -> bool:
    """True if the referring page address mentions the admin path, query flag or fragment."""
    if not referrer:
        return False
    return any(marker in referrer for marker in ADMIN_REFERRER_MARKERS)


@dataclass
class Connection:
    """One connected Socket.IO session."""
    sid: str
    connected_at: str
    user_agent: str = ""
    is_admin: bool = False


class ConnectionRegistry:
    """Currently connected sessions plus the subset classified as admin."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._admins: Set[str] = set()
        self._lock = threading.Lock()

    def connect(self, sid: str, user_agent: str = "", referrer: Optional[str] = None) -> Connection:
        conn = Connection(
            sid=sid,
            connected_at=utc_now(),
            user_agent=user_agent or "",
            is_admin=is_admin_referrer(referrer),
        )
        with self._lock:
            self._connections[sid] = conn
            if conn.is_admin:
                self._admins.add(sid)
        return conn

    def disconnect(self, sid: str) -> Optional[Connection]:
        with self._lock:
            self._admins.discard(sid)
            return self._connections.pop(sid, None)

    def admin_sids(self) -> List[str]:
        with self._lock:
            return list(self._admins)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._connections)

    @property
    def admin_count(self) -> int:
        with self._lock:
            return len(self._admins)
