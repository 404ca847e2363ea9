"""In-memory room registry and matchmaking."""

from __future__ import annotations

import logging
import random
import string
import time
import uuid
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .errors import NotFound
from .game import BLACK, COLOR_NAMES, WHITE, Color
from .room import FINISHED, MODE_AI, MODE_PVP, Connection, Room

logger = logging.getLogger(__name__)

ROOM_TTL_SECONDS = 60 * 30  # 30 minutes

ADJECTIVES = (
    "brisk", "sunny", "mellow", "lucky", "bold", "quiet", "swift",
    "witty", "cosmic", "silver", "crimson", "jade", "amber", "violet",
)
NOUNS = (
    "otter", "falcon", "comet", "willow", "acorn", "nebula", "lotus",
    "maple", "coral", "ember", "harbor", "lynx", "reef", "thistle",
)

Assignment = Tuple[Room, Color]


def random_room_name() -> str:
    alphabet = string.ascii_lowercase + string.digits
    tail = "".join(random.choice(alphabet) for _ in range(2))
    return f"{random.choice(ADJECTIVES)}-{random.choice(NOUNS)}-{tail}"


class RoomRegistry:
    """Owns every room; rooms are only created here and only evicted here.

    Iteration follows insertion order, which is the order matchmaking scans.
    Rooms that have had no live human connection and no activity for
    ``ttl_seconds`` are evicted lazily whenever a session is matched.
    """

    def __init__(
        self,
        ttl_seconds: float = ROOM_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._rooms: Dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        return self._rooms.get(room_id)

    def require(self, room_id: Optional[str]) -> Room:
        room = self.get(room_id)
        if room is None:
            raise NotFound("Room not found")
        return room

    def create_room(self, mode: str = MODE_PVP) -> Room:
        now = self.clock()
        room = Room(
            id=str(uuid.uuid4()),
            name=random_room_name(),
            mode=mode,
            created_at=now,
            last_activity=now,
            clock=self.clock,
        )
        self._rooms[room.id] = room
        logger.info("Room %s (%s) created in %s mode", room.name, room.id, mode)
        return room

    def evict_idle(self, now: Optional[float] = None) -> List[str]:
        """Drop rooms abandoned for longer than the TTL; returns their ids."""
        if now is None:
            now = self.clock()
        cutoff = now - self.ttl_seconds
        expired = [
            room_id
            for room_id, room in self._rooms.items()
            if room.is_idle_since(cutoff)
        ]
        for room_id in expired:
            room = self._rooms.pop(room_id)
            logger.info("Room %s (%s) evicted after inactivity", room.name, room_id)
        return expired

    # ---- matchmaking ----

    def assign(
        self, session_id: str, connection: Optional[Connection], mode: str
    ) -> Assignment:
        self.evict_idle()
        if mode == MODE_AI:
            room, color = self._match_ai()
        else:
            room, color = self._match_pvp(session_id)
        room.seat(session_id, color, connection)
        room.touch()
        logger.info(
            "Session %s seated as %s in %s", session_id, COLOR_NAMES[color], room.name
        )
        return room, color

    def _match_ai(self) -> Assignment:
        for room in self._rooms.values():
            if room.mode != MODE_AI or room.state == FINISHED:
                continue
            human = room.human_color
            if human is not None and room.seats[human] is None:
                return room, human
        room = self.create_room(MODE_AI)
        return room, BLACK

    def _match_pvp(self, session_id: str) -> Assignment:
        fallback: Optional[Assignment] = None
        for room in self._rooms.values():
            if room.mode != MODE_PVP or room.state == FINISHED:
                continue
            if room.color_of(session_id):
                continue
            filled = room.filled_seats()
            if filled == 1:
                color = BLACK if room.seats[BLACK] is None else WHITE
                return room, color
            if filled == 0 and fallback is None:
                fallback = (room, BLACK)
        if fallback is not None:
            return fallback
        return self.create_room(MODE_PVP), BLACK

    def rejoin(
        self, session_id: str, room_id: Optional[str], connection: Connection
    ) -> Optional[Assignment]:
        """Reattach a session to the seat it already holds; state is untouched."""
        room = self.get(room_id)
        if room is None or not room.color_of(session_id):
            return None
        color = room.attach(session_id, connection)
        room.touch()
        logger.info(
            "Session %s rejoined %s as %s", session_id, room.name, COLOR_NAMES[color]
        )
        return room, color

    def claim(
        self,
        session_id: str,
        room_id: Optional[str],
        connection: Optional[Connection],
        mode: str,
    ) -> Optional[Assignment]:
        """Take a free seat in one specific room, e.g. the room a player came from."""
        self.evict_idle()
        room = self.get(room_id)
        if room is None or room.mode != mode:
            return None
        for color in (BLACK, WHITE):
            if room.seats[color] is None:
                room.seat(session_id, color, connection)
                room.touch()
                logger.info(
                    "Session %s returned to %s as %s",
                    session_id,
                    room.name,
                    COLOR_NAMES[color],
                )
                return room, color
        return None
