"""Routes client messages to rooms and pushes the resulting state back out.

Every handler and every deferred AI reply runs to completion under a single
lock, so a room is never mutated by two callers at once. Nothing in here
awaits; outbound payloads are handed to each connection's own push channel.
"""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from . import protocol
from .errors import GomokuError, NotFound, StateViolation
from .game import COLOR_NAMES, EMPTY, Color
from .registry import Assignment, RoomRegistry
from .room import (
    ACTIVE,
    AI_SESSION,
    FINISHED,
    MODE_AI,
    MODE_PVP,
    Connection,
    MoveOutcome,
    Room,
)
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

AI_MOVE_DELAY = 0.2  # seconds; pacing only

OPPONENT_LEFT = (
    "Your opponent left the game. Waiting for them (or another player) to join…"
)


@dataclass
class Link:
    """What the coordinator knows about one live connection."""

    session_id: Optional[str] = None
    room_id: Optional[str] = None
    # PvP room to return to after a detour into AI mode
    prev_pvp_room_id: Optional[str] = None


@dataclass(frozen=True)
class AITurn:
    """An AI reply computed against one position, applied only if still current."""

    room_id: str
    color: Color
    x: int
    y: int
    game: int
    ply: int


Handler = Callable[[Connection, Link, Any], None]


class SessionCoordinator:
    def __init__(
        self,
        registry: RoomRegistry,
        scheduler: Scheduler,
        ai_delay: float = AI_MOVE_DELAY,
    ) -> None:
        self.registry = registry
        self.scheduler = scheduler
        self.ai_delay = ai_delay
        self._links: Dict[Connection, Link] = {}
        self._lock = threading.Lock()
        self._handlers: Dict[str, Handler] = {
            "hello": self._on_hello,
            "move": self._on_move,
            "newGame": self._on_new_game,
            "newAIGame": self._on_new_ai_game,
            "switchMode": self._on_switch_mode,
        }

    # ---- entry points used by the transport ----

    def handle(
        self, connection: Connection, raw: Union[str, bytes, Mapping[str, Any]]
    ) -> None:
        """Process one inbound record from ``connection`` to completion."""
        with self._lock:
            link = self._links.setdefault(connection, Link())
            try:
                message = protocol.decode(raw)
                self._handlers[message.type](connection, link, message)
            except GomokuError as exc:
                logger.debug(
                    "Rejected message from %s: %s", link.session_id, exc.message
                )
                connection.deliver(protocol.error(exc.message))

    def disconnect(self, connection: Connection) -> None:
        """Drop a closed connection; its seat stays reserved for a rejoin."""
        with self._lock:
            link = self._links.pop(connection, None)
            if link is None:
                return
            room = self.registry.get(link.room_id)
            if room is not None and self._detach(room, connection):
                logger.info(
                    "Session %s disconnected from %s", link.session_id, room.name
                )
                self._notify_left(room)

    # ---- handlers ----

    def _on_hello(
        self, connection: Connection, link: Link, message: protocol.HelloMessage
    ) -> None:
        session_id = message.session_id
        if not session_id or session_id == AI_SESSION:
            session_id = str(uuid.uuid4())

        # A repeated hello moves this connection; its old seat stays reserved
        previous = self.registry.get(link.room_id)
        if previous is not None:
            self._detach(previous, connection)
        link.session_id = session_id

        stale = self._seated_connection(message.room_id, session_id)
        assignment = self.registry.rejoin(session_id, message.room_id, connection)
        if assignment is not None and stale is not None and stale is not connection:
            self._unlink(stale, "Session resumed on another connection")
        if assignment is None:
            assignment = self.registry.assign(session_id, connection, message.mode)

        room = self._bind(connection, link, session_id, assignment)
        if previous is not None and previous is not room:
            self._notify_left(previous)
        self._broadcast(room, protocol.room_status(room))

    def _on_move(
        self, connection: Connection, link: Link, message: protocol.MoveMessage
    ) -> None:
        room, session_id = self._seated_room(link)
        outcome = room.move(session_id, message.x, message.y)
        self._publish_move(room, outcome)
        self._schedule_ai_turn(room)

    def _on_new_game(
        self, connection: Connection, link: Link, message: protocol.NewGameMessage
    ) -> None:
        room, _ = self._seated_room(link)
        room.reset()
        logger.info("Room %s reset for a new game", room.name)
        self._broadcast_snapshots(room)
        if room.mode == MODE_AI:
            text = "New AI game started. Black moves first."
        else:
            text = f"New multiplayer game started in {room.name}. Black moves first."
        self._broadcast(room, protocol.status(text, waiting=room.state != ACTIVE))

    def _on_new_ai_game(
        self, connection: Connection, link: Link, message: protocol.NewAIGameMessage
    ) -> None:
        room, session_id = self._seated_room(link)
        if room.mode != MODE_AI:
            raise StateViolation("Not in an AI room")
        if room.color_of(session_id) != room.human_color:
            raise StateViolation("Only the human player can restart")
        room.reset()
        logger.info("AI room %s reset for a new game", room.name)
        self._broadcast_snapshots(room)
        text = "New AI game started. Black moves first."
        self._broadcast(room, protocol.status(text, waiting=False))

    def _on_switch_mode(
        self, connection: Connection, link: Link, message: protocol.SwitchModeMessage
    ) -> None:
        room, session_id = self._seated_room(link)
        if room.mode == MODE_PVP:
            link.prev_pvp_room_id = room.id
        self._leave(room, session_id, message.mode)

        if message.mode == MODE_AI:
            assignment = self.registry.assign(session_id, connection, MODE_AI)
        else:
            prefer = message.prefer_room_id or link.prev_pvp_room_id
            assignment = (
                self.registry.rejoin(session_id, prefer, connection)
                or self.registry.claim(session_id, prefer, connection, MODE_PVP)
                or self.registry.assign(session_id, connection, MODE_PVP)
            )
            link.prev_pvp_room_id = assignment[0].id

        target = self._bind(connection, link, session_id, assignment)
        logger.info(
            "Session %s switched to %s mode in %s",
            session_id,
            message.mode,
            target.name,
        )
        self._broadcast(target, protocol.room_status(target))

    # ---- AI continuation ----

    def _schedule_ai_turn(self, room: Room) -> None:
        if room.ai is None or room.state != ACTIVE or room.next_turn != room.ai.player:
            return
        target = room.ai.choose(room.board)
        if target is None:
            return
        x, y = target
        turn = AITurn(
            room.id, room.ai.player, x, y, game=room.game, ply=len(room.moves)
        )
        callback = functools.partial(self.run_ai_turn, turn)
        self.scheduler.call_later(self.ai_delay, callback)

    def run_ai_turn(self, turn: AITurn) -> None:
        """Apply a scheduled AI move if the position it was chosen for still stands."""
        with self._lock:
            room = self.registry.get(turn.room_id)
            if room is None or not self._ai_turn_current(room, turn):
                logger.debug("Dropping stale AI move %s", turn)
                return
            try:
                outcome = room.move(AI_SESSION, turn.x, turn.y)
            except StateViolation as exc:
                logger.debug("Dropping AI move %s: %s", turn, exc.message)
                return
            self._publish_move(room, outcome)

    @staticmethod
    def _ai_turn_current(room: Room, turn: AITurn) -> bool:
        return (
            room.game == turn.game
            and room.state != FINISHED
            and room.next_turn == turn.color
            and room.board[turn.y][turn.x] == EMPTY
            and len(room.moves) == turn.ply
        )

    # ---- helpers ----

    def _seated_room(self, link: Link) -> Tuple[Room, str]:
        room = self.registry.get(link.room_id)
        if room is None or link.session_id is None:
            raise NotFound("Room not found")
        if not room.color_of(link.session_id):
            raise StateViolation("Not a player in this room")
        return room, link.session_id

    def _seated_connection(
        self, room_id: Optional[str], session_id: str
    ) -> Optional[Connection]:
        room = self.registry.get(room_id)
        if room is None:
            return None
        color = room.color_of(session_id)
        seat = room.seats[color] if color else None
        return seat.connection if seat is not None else None

    def _bind(
        self,
        connection: Connection,
        link: Link,
        session_id: str,
        assignment: Assignment,
    ) -> Room:
        room, color = assignment
        link.room_id = room.id
        connection.deliver(protocol.hello_ack(session_id, room, color))
        connection.deliver(protocol.state_snapshot(room, session_id))
        return room

    @staticmethod
    def _detach(room: Room, connection: Connection) -> bool:
        if room.detach(connection) == EMPTY:
            return False
        room.touch()
        return True

    def _notify_left(self, room: Room) -> None:
        if not room.both_live():
            self._broadcast(room, protocol.status(OPPONENT_LEFT, waiting=True))

    def _unlink(self, connection: Connection, reason: str) -> None:
        link = self._links.get(connection)
        if link is not None:
            link.room_id = None
        connection.deliver(protocol.error(reason))

    def _leave(self, room: Room, session_id: str, new_mode: str) -> None:
        """Give up a seat before a mode switch; the room restarts for whoever stays."""
        room.vacate_seat(session_id)
        room.reset()
        if new_mode == MODE_AI:
            text = "Your opponent switched to AI. Waiting for another player to join…"
        else:
            text = "Your opponent left the room. Waiting for another player to join…"
        self._broadcast_snapshots(room)
        self._broadcast(room, protocol.status(text, waiting=True))

    def _publish_move(self, room: Room, outcome: MoveOutcome) -> None:
        delta = protocol.move_delta(
            outcome.x, outcome.y, outcome.color, outcome.next_turn
        )
        self._broadcast(room, delta)
        if outcome.winner != EMPTY:
            logger.info("Room %s won by %s", room.name, COLOR_NAMES[outcome.winner])
            self._broadcast(room, protocol.result(outcome.winner))
        elif outcome.draw:
            logger.info("Room %s ended in a draw", room.name)
            text = "Board is full. The game is a draw."
            self._broadcast(room, protocol.status(text, waiting=False))

    def _broadcast(self, room: Room, payload: Dict[str, Any]) -> None:
        for connection in room.live_connections():
            connection.deliver(payload)

    def _broadcast_snapshots(self, room: Room) -> None:
        for seat in room.seats.values():
            if seat is not None and seat.connection is not None and seat.is_live:
                seat.connection.deliver(protocol.state_snapshot(room, seat.session_id))
