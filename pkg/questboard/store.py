"""
Quest board storage backend (in-memory, mirrored to a JSON file).

Provides CRUD operations on quests, markers and categories plus derived stats.
Every mutation schedules a debounced whole-file save; a heartbeat rewrites the
file on a fixed interval regardless of changes.
"""
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .schema import (
    DEFAULT_CATEGORIES,
    Analytics,
    Marker,
    Quest,
    QuestStatus,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

SAVE_INTERVAL_SECS = 10.0
SAVE_DELAY_SECS = 1.0

TimerFactory = Callable[[float, Callable[[], None]], Any]


def _user_key(user: Any) -> Any:
    """Hashable stand-in for a quest's ``user`` value."""
    if user is None or isinstance(user, (str, int, float, bool)):
        return user
    return json.dumps(user, sort_keys=True, default=str)


class QuestBoardStore:
    """Canonical in-memory collections with debounced JSON-file persistence."""

    def __init__(
        self,
        data_path: str,
        save_interval: float = SAVE_INTERVAL_SECS,
        save_delay: float = SAVE_DELAY_SECS,
        timer_factory: TimerFactory = threading.Timer,
    ):
        """Initialize store and adopt whatever the data file already holds."""
        self.data_path = Path(data_path)
        self.save_interval = save_interval
        self.save_delay = save_delay
        self._timer_factory = timer_factory

        self.quests: List[Quest] = []
        self.markers: List[Marker] = []
        self.categories: List[str] = list(DEFAULT_CATEGORIES)
        self.analytics = Analytics()

        # Socket.IO handlers run on worker threads; one lock serialises them.
        self._lock = threading.RLock()
        self._pending_save = None
        self._heartbeat = None
        self._running = False

        self.load()

    # ── Persistence ──────────────────────────────────────────────────────────

    def load(self) -> None:
        """Tolerant partial merge: absent keys keep their defaults, unknown keys are ignored."""
        if not self.data_path.exists():
            logger.info(f"No data file at {self.data_path}, starting empty")
            return
        try:
            saved = json.loads(self.data_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error loading data from {self.data_path}: {e}")
            return
        if not isinstance(saved, dict):
            logger.error(f"Error loading data from {self.data_path}: top level is not an object")
            return

        with self._lock:
            if isinstance(saved.get("quests"), list):
                self.quests = [Quest.from_dict(q) for q in saved["quests"] if isinstance(q, dict)]
            if isinstance(saved.get("markers"), list):
                self.markers = [Marker.from_dict(m) for m in saved["markers"] if isinstance(m, dict)]
            if isinstance(saved.get("customCategories"), list):
                self.categories = [c for c in saved["customCategories"] if isinstance(c, str)]
            if isinstance(saved.get("analytics"), dict):
                self.analytics = Analytics.from_dict(saved["analytics"])

        logger.info(f"Data loaded: {len(self.quests)} quests, {len(self.markers)} markers")

    def to_document(self, last_updated: Optional[str] = None) -> Dict[str, Any]:
        """Serialize the whole state into the durability format."""
        with self._lock:
            analytics = self.analytics.to_dict()
            if last_updated is not None:
                analytics["lastUpdated"] = last_updated
            return {
                "quests": [q.to_dict() for q in self.quests],
                "markers": [m.to_dict() for m in self.markers],
                "customCategories": list(self.categories),
                "analytics": analytics,
            }

    def save(self) -> bool:
        """Rewrite the data file. Failures are logged and swallowed."""
        with self._lock:
            stamp = utc_now()
            try:
                payload = json.dumps(self.to_document(last_updated=stamp), indent=2, ensure_ascii=False)
                self.data_path.parent.mkdir(parents=True, exist_ok=True)
                self.data_path.write_text(payload, encoding="utf-8")
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error saving data to {self.data_path}: {e}")
                return False
            self.analytics.last_updated = stamp
        logger.debug(f"Data saved to {self.data_path}")
        return True

    def schedule_save(self) -> None:
        """Debounce: cancel any pending save and re-arm it for ``save_delay`` seconds."""
        with self._lock:
            if self._pending_save is not None:
                self._pending_save.cancel()
            timer = self._timer_factory(self.save_delay, lambda: self._run_pending_save(timer))
            timer.daemon = True
            self._pending_save = timer
            timer.start()

    def _run_pending_save(self, timer: Any) -> None:
        with self._lock:
            # A timer that fired while waiting on the lock may have been superseded.
            if self._pending_save is not timer:
                return
            self._pending_save = None
            self.save()

    def start(self) -> None:
        """Start the unconditional heartbeat save."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm_heartbeat()

    def _arm_heartbeat(self) -> None:
        timer = self._timer_factory(self.save_interval, self._heartbeat_tick)
        timer.daemon = True
        self._heartbeat = timer
        timer.start()

    def _heartbeat_tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            self.save()
            self._arm_heartbeat()

    def close(self) -> None:
        """Stop timers and flush state one last time."""
        with self._lock:
            self._running = False
            for timer in (self._pending_save, self._heartbeat):
                if timer is not None:
                    timer.cancel()
            self._pending_save = None
            self._heartbeat = None
            self.save()

    # ── Quests ───────────────────────────────────────────────────────────────

    def add_quest(self, payload: Any) -> Quest:
        """Store a new quest at the head of the list. Any payload mapping is accepted."""
        quest = Quest.create(payload)
        with self._lock:
            self.quests.insert(0, quest)
            self.schedule_save()
        return quest

    def get_quest(self, quest_id: Any) -> Optional[Quest]:
        with self._lock:
            return next((q for q in self.quests if q.id == quest_id), None)

    def update_quest(self, quest_id: Any, status: Optional[str]) -> Optional[Quest]:
        """Set a quest's status. Returns None when the id is unknown."""
        with self._lock:
            quest = self.get_quest(quest_id)
            if quest is None:
                return None
            quest.set_status(status)
            self.schedule_save()
            return quest

    def delete_quest(self, quest_id: Any) -> Optional[Quest]:
        with self._lock:
            for index, quest in enumerate(self.quests):
                if quest.id == quest_id:
                    del self.quests[index]
                    self.schedule_save()
                    return quest
            return None

    def clear_all_quests(self) -> bool:
        with self._lock:
            self.quests = []
            self.schedule_save()
        return True

    # ── Markers ──────────────────────────────────────────────────────────────

    def add_marker(self, payload: Any) -> Marker:
        marker = Marker.create(payload)
        with self._lock:
            self.markers.insert(0, marker)
            self.schedule_save()
        return marker

    def delete_marker(self, marker_id: Any) -> Optional[Marker]:
        with self._lock:
            for index, marker in enumerate(self.markers):
                if marker.id == marker_id:
                    del self.markers[index]
                    self.schedule_save()
                    return marker
            return None

    def clear_all_markers(self) -> bool:
        with self._lock:
            self.markers = []
            self.schedule_save()
        return True

    # ── Categories ───────────────────────────────────────────────────────────

    def add_category(self, name: str) -> Optional[str]:
        """Append a category. Returns None if it already exists (exact, case-sensitive)."""
        with self._lock:
            if name in self.categories:
                return None
            self.categories.append(name)
            self.schedule_save()
            return name

    def delete_category(self, name: str) -> Optional[str]:
        # Quests referencing the category are left untouched.
        with self._lock:
            if name not in self.categories:
                return None
            self.categories.remove(name)
            self.schedule_save()
            return name

    # ── Analytics & reads ────────────────────────────────────────────────────

    def record_connection(self) -> int:
        with self._lock:
            self.analytics.total_connections += 1
            return self.analytics.total_connections

    def get_stats(self) -> Dict[str, Any]:
        """Board statistics, computed on every call."""
        today = datetime.now().astimezone().date().isoformat()
        with self._lock:
            markers_today = 0
            for marker in self.markers:
                created = parse_timestamp(marker.created_at)
                if created is not None and created.astimezone().date().isoformat() == today:
                    markers_today += 1

            return {
                "totalQuests": len(self.quests),
                "totalMarkers": len(self.markers),
                "questsOpen": sum(1 for q in self.quests if q.status == QuestStatus.OPEN.value),
                "questsTaken": sum(1 for q in self.quests if q.status == QuestStatus.TAKEN.value),
                "activeUsers": len({_user_key(q.user) for q in self.quests}),
                "markersToday": markers_today,
                "customCategories": len(self.categories),
                "lastUpdated": self.analytics.last_updated,
            }

    def get_all_data(self) -> Dict[str, Any]:
        """Snapshot of quests, markers and categories."""
        with self._lock:
            return {
                "quests": [q.to_dict() for q in self.quests],
                "markers": [m.to_dict() for m in self.markers],
                "customCategories": list(self.categories),
            }
