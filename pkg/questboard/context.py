"""Process-wide state shared by the HTTP routes and the Socket.IO gateway."""
from dataclasses import dataclass, field

from .registry import ConnectionRegistry
from .store import QuestBoardStore


@dataclass
class BoardContext:
    """Built once at startup and handed to every surface that needs it."""
    store: QuestBoardStore
    registry: ConnectionRegistry = field(default_factory=ConnectionRegistry)
