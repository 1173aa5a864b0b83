"""
Realtime gateway: routes Socket.IO messages to the store and fans results out.

Every mutation that succeeds is broadcast to all connected clients, the sender
included. Quest and marker creation additionally notify admin sessions. Each
handler catches its own failures so one bad message never affects other
clients; only ``addQuest`` reports a failure back to the sender.
"""
import logging
from typing import Any, Optional

from flask import request
from flask_socketio import SocketIO

from .context import BoardContext
from .schema import utc_now

logger = logging.getLogger(__name__)

# Client -> server message name -> handler method
MESSAGES = {
    "addQuest": "on_add_quest",
    "updateQuest": "on_update_quest",
    "deleteQuest": "on_delete_quest",
    "addMarker": "on_add_marker",
    "deleteMarker": "on_delete_marker",
    "clearAllQuests": "on_clear_all_quests",
    "clearAllMarkers": "on_clear_all_markers",
    "addCategory": "on_add_category",
    "deleteCategory": "on_delete_category",
    "getAdminStats": "on_get_admin_stats",
    "ping": "on_ping",
}


class QuestBoardGateway:
    """Binds quest board handlers onto a Flask-SocketIO server."""

    def __init__(self, socketio: SocketIO, context: BoardContext):
        self.socketio = socketio
        self.store = context.store
        self.registry = context.registry

    def register(self) -> None:
        """Attach connect/disconnect and every message handler."""
        self.socketio.on_event("connect", self.on_connect)
        self.socketio.on_event("disconnect", self.on_disconnect)
        for message, method in MESSAGES.items():
            self.socketio.on_event(message, getattr(self, method))

    # ── Emit helpers ─────────────────────────────────────────────────────────

    def broadcast(self, event: str, payload: Any = None) -> None:
        if payload is None:
            self.socketio.emit(event)
        else:
            self.socketio.emit(event, payload)

    def reply(self, event: str, payload: Any) -> None:
        self.socketio.emit(event, payload, to=request.sid)

    def notify_admins(self, kind: str, message: str, data: dict) -> None:
        payload = {
            "type": kind,
            "message": message,
            "data": data,
            "timestamp": utc_now(),
        }
        for sid in self.registry.admin_sids():
            self.socketio.emit("adminNotification", payload, to=sid)

    def broadcast_user_count(self) -> None:
        self.broadcast("userCount", self.registry.count)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def on_connect(self, auth: Optional[dict] = None) -> None:
        sid = request.sid
        conn = self.registry.connect(
            sid,
            user_agent=request.headers.get("User-Agent", ""),
            referrer=request.headers.get("Referer"),
        )
        self.store.record_connection()
        logger.info(f"New connection: {sid}")
        if conn.is_admin:
            logger.info(f"Admin connected: {sid}")

        initial = self.store.get_all_data()
        initial["isAdmin"] = conn.is_admin
        initial["connectionId"] = sid
        self.reply("initialData", initial)
        self.broadcast_user_count()

    def on_disconnect(self, reason: Any = None) -> None:
        sid = request.sid
        self.registry.disconnect(sid)
        logger.info(f"Disconnected: {sid}")
        self.broadcast_user_count()

    # ── Quests ───────────────────────────────────────────────────────────────

    def on_add_quest(self, payload: Any = None) -> None:
        try:
            quest = self.store.add_quest(payload).to_dict()
            logger.info(f"Quest added: {quest.get('title')}")
            self.broadcast("questAdded", quest)
            self.notify_admins("quest_added", f'New quest: "{quest.get("title")}"', quest)
        except Exception:
            logger.exception("Error adding quest")
            self.reply("error", {"message": "Failed to add quest"})

    def on_update_quest(self, payload: Any = None) -> None:
        try:
            quest = self.store.update_quest(payload.get("id"), payload.get("status"))
            if quest is not None:
                logger.info(f"Quest updated: {quest.title} -> {quest.status}")
                self.broadcast("questUpdated", quest.to_dict())
        except Exception:
            logger.exception("Error updating quest")

    def on_delete_quest(self, quest_id: Any = None) -> None:
        try:
            quest = self.store.delete_quest(quest_id)
            if quest is not None:
                logger.info(f"Quest deleted: {quest.title}")
                self.broadcast("questDeleted", quest_id)
        except Exception:
            logger.exception("Error deleting quest")

    def on_clear_all_quests(self, *args: Any) -> None:
        try:
            self.store.clear_all_quests()
            logger.info("All quests cleared")
            self.broadcast("allQuestsCleared")
        except Exception:
            logger.exception("Error clearing quests")

    # ── Markers ──────────────────────────────────────────────────────────────

    def on_add_marker(self, payload: Any = None) -> None:
        try:
            marker = self.store.add_marker(payload).to_dict()
            logger.info(f"Marker added: {marker.get('title')}")
            self.broadcast("markerAdded", marker)
            self.notify_admins("marker_added", f'New marker: "{marker.get("title")}"', marker)
        except Exception:
            logger.exception("Error adding marker")

    def on_delete_marker(self, marker_id: Any = None) -> None:
        try:
            marker = self.store.delete_marker(marker_id)
            if marker is not None:
                logger.info(f"Marker deleted: {marker.title}")
                self.broadcast("markerDeleted", marker_id)
        except Exception:
            logger.exception("Error deleting marker")

    def on_clear_all_markers(self, *args: Any) -> None:
        try:
            self.store.clear_all_markers()
            logger.info("All markers cleared")
            self.broadcast("allMarkersCleared")
        except Exception:
            logger.exception("Error clearing markers")

    # ── Categories ───────────────────────────────────────────────────────────

    def on_add_category(self, name: Any = None) -> None:
        try:
            if self.store.add_category(name) is not None:
                logger.info(f"Category added: {name}")
                self.broadcast("categoryAdded", name)
        except Exception:
            logger.exception("Error adding category")

    def on_delete_category(self, name: Any = None) -> None:
        try:
            if self.store.delete_category(name) is not None:
                logger.info(f"Category deleted: {name}")
                self.broadcast("categoryDeleted", name)
        except Exception:
            logger.exception("Error deleting category")

    # ── Sender-only replies ──────────────────────────────────────────────────

    def on_get_admin_stats(self, *args: Any) -> None:
        try:
            stats = self.store.get_stats()
            stats["connectedUsers"] = self.registry.count
            stats["adminCount"] = self.registry.admin_count
            self.reply("adminStats", stats)
        except Exception:
            logger.exception("Error building admin stats")

    def on_ping(self, *args: Any) -> None:
        try:
            self.reply("pong", {"timestamp": utc_now()})
        except Exception:
            logger.exception("Error answering ping")
