"""gomoku package exposing the board rules, the AI and the room server."""

from .ai import HeuristicAI, choose_move
from .coordinator import SessionCoordinator
from .registry import RoomRegistry
from .room import Room
from .server import app, create_app

__all__ = [
    "HeuristicAI",
    "Room",
    "RoomRegistry",
    "SessionCoordinator",
    "app",
    "choose_move",
    "create_app",
]
