"""A single match: board, move log, turn cursor and the two seats."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from .ai import HeuristicAI
from .errors import StateViolation
from .game import (
    BLACK,
    EMPTY,
    WHITE,
    Board,
    Color,
    apply_move,
    check_winner,
    in_bounds,
    is_full,
    make_board,
    opponent,
)

MODE_PVP = "pvp"
MODE_AI = "ai"

WAITING = "waiting"
ACTIVE = "active"
FINISHED = "finished"

# Session id bound to the synthetic seat of an AI room
AI_SESSION = "AI"


class Connection(Protocol):
    """Outbound half of a live transport handle."""

    @property
    def is_open(self) -> bool: ...

    def deliver(self, payload: Dict[str, object]) -> None: ...


@dataclass
class Seat:
    session_id: str
    # Non-owning; the transport may drop it while the seat stays reserved
    connection: Optional[Connection] = field(default=None, repr=False)

    @property
    def is_ai(self) -> bool:
        return self.session_id == AI_SESSION

    @property
    def is_live(self) -> bool:
        return self.connection is not None and self.connection.is_open


@dataclass
class MoveOutcome:
    x: int
    y: int
    color: Color
    next_turn: Color  # EMPTY once the game is won
    winner: Color = EMPTY
    draw: bool = False


@dataclass
class Room:
    id: str
    name: str
    mode: str = MODE_PVP
    board: Board = field(default_factory=make_board)
    moves: List[Dict[str, int]] = field(default_factory=list)
    next_turn: Color = BLACK
    winner: Color = EMPTY
    # Incremented by every reset
    game: int = 0
    seats: Dict[Color, Optional[Seat]] = field(
        default_factory=lambda: {BLACK: None, WHITE: None}
    )
    ai: Optional[HeuristicAI] = field(default=None, repr=False)
    created_at: float = field(default_factory=time.time)
    last_activity: float = 0.0
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.last_activity:
            self.last_activity = self.created_at
        if self.mode == MODE_AI and self.ai is None:
            # The AI always holds WHITE; the human plays first as BLACK
            self.ai = HeuristicAI(player=WHITE)
            self.seats[WHITE] = Seat(session_id=AI_SESSION)

    # ---- derived state ----

    @property
    def state(self) -> str:
        if self.winner != EMPTY:
            return FINISHED
        if self.seats[BLACK] is None or self.seats[WHITE] is None:
            return WAITING
        return ACTIVE

    @property
    def human_color(self) -> Optional[Color]:
        """Seat reserved for the human in an AI room."""
        if self.ai is None:
            return None
        return opponent(self.ai.player)

    def color_of(self, session_id: Optional[str]) -> Color:
        if not session_id:
            return EMPTY
        for color in (BLACK, WHITE):
            seat = self.seats[color]
            if seat is not None and seat.session_id == session_id:
                return color
        return EMPTY

    def filled_seats(self) -> int:
        return sum(1 for seat in self.seats.values() if seat is not None)

    def live_connections(self) -> List[Connection]:
        out: List[Connection] = []
        for color in (BLACK, WHITE):
            seat = self.seats[color]
            if seat is not None and seat.connection is not None and seat.is_live:
                out.append(seat.connection)
        return out

    def both_live(self) -> bool:
        return all(seat is not None and seat.is_live for seat in self.seats.values())

    def is_idle_since(self, cutoff: float) -> bool:
        return self.last_activity <= cutoff and not self.live_connections()

    def touch(self) -> None:
        self.last_activity = self.clock()

    # ---- seat transitions ----

    def seat(
        self, session_id: str, color: Color, connection: Optional[Connection]
    ) -> None:
        if color not in (BLACK, WHITE):
            raise StateViolation("Unknown seat")
        if self.seats[color] is not None:
            raise StateViolation("Seat already taken")
        self.seats[color] = Seat(session_id=session_id, connection=connection)

    def attach(self, session_id: str, connection: Connection) -> Color:
        """Rebind a live connection to the session's existing seat."""
        color = self.color_of(session_id)
        if color == EMPTY:
            raise StateViolation("Not a player in this room")
        seat = self.seats[color]
        if seat is None:
            raise StateViolation("Not a player in this room")
        seat.connection = connection
        return color

    def detach(self, connection: Connection) -> Color:
        """Forget a dropped connection but keep its seat reserved."""
        for color in (BLACK, WHITE):
            seat = self.seats[color]
            if seat is not None and seat.connection is connection:
                seat.connection = None
                return color
        return EMPTY

    def vacate_seat(self, session_id: str) -> Color:
        color = self.color_of(session_id)
        if color == EMPTY or (self.ai is not None and color == self.ai.player):
            return EMPTY
        self.seats[color] = None
        return color

    # ---- turn state machine ----

    def move(self, session_id: str, x: int, y: int) -> MoveOutcome:
        color = self.color_of(session_id)
        if color == EMPTY:
            raise StateViolation("Not a player in this room")
        if self.state == FINISHED:
            raise StateViolation("Game already finished")
        if self.state == WAITING:
            raise StateViolation("Waiting for an opponent")
        if color != self.next_turn:
            raise StateViolation("Not your turn")
        if not in_bounds(x, y):
            raise StateViolation("Out-of-bounds move")
        if self.board[y][x] != EMPTY:
            raise StateViolation("Intersection occupied")

        apply_move(self.board, x, y, color)
        self.moves.append({"x": x, "y": y, "color": color})
        self.touch()

        winner = check_winner(self.board, x, y)
        if winner != EMPTY:
            self.winner = winner
            return MoveOutcome(x, y, color, next_turn=EMPTY, winner=winner)

        self.next_turn = opponent(self.next_turn)
        return MoveOutcome(
            x, y, color, next_turn=self.next_turn, draw=is_full(self.board)
        )

    def reset(self) -> None:
        """Start a fresh game in place; id, name and seats are kept."""
        self.board = make_board()
        self.moves = []
        self.next_turn = BLACK
        self.winner = EMPTY
        self.game += 1
        self.touch()
