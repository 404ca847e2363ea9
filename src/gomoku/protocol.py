"""Wire format: validated inbound records and the payloads pushed to clients."""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .errors import ProtocolError
from .game import BLACK, WHITE, Color
from .room import MODE_AI, MODE_PVP, Room

MAX_FRAME_BYTES = 1024
MAX_TYPE_LENGTH = 20
MAX_ID_LENGTH = 60

Mode = Literal["pvp", "ai"]
Payload = Dict[str, Any]


def _well_formed_id(value: object) -> Optional[str]:
    if isinstance(value, str) and 0 < len(value) <= MAX_ID_LENGTH:
        return value
    return None


class _ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class HelloMessage(_ClientMessage):
    """First record on a connection: identify, then restore or find a room."""

    type: Literal["hello"]
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    room_id: Optional[str] = Field(default=None, alias="roomId")
    mode: Mode = MODE_PVP

    @field_validator("session_id", "room_id", mode="before")
    @classmethod
    def ignore_malformed_ids(cls, value: object) -> Optional[str]:
        # A bad id is treated as absent: the session is minted afresh
        return _well_formed_id(value)

    @field_validator("mode", mode="before")
    @classmethod
    def default_mode(cls, value: object) -> object:
        return MODE_PVP if value is None else value


class MoveMessage(_ClientMessage):
    type: Literal["move"]
    x: StrictInt
    y: StrictInt


class NewGameMessage(_ClientMessage):
    type: Literal["newGame"]


class NewAIGameMessage(_ClientMessage):
    type: Literal["newAIGame"]


class SwitchModeMessage(_ClientMessage):
    type: Literal["switchMode"]
    mode: Mode
    prefer_room_id: Optional[str] = Field(default=None, alias="preferRoomId")

    @field_validator("prefer_room_id", mode="before")
    @classmethod
    def ignore_malformed_room(cls, value: object) -> Optional[str]:
        return _well_formed_id(value)


ClientMessage = Annotated[
    Union[
        HelloMessage,
        MoveMessage,
        NewGameMessage,
        NewAIGameMessage,
        SwitchModeMessage,
    ],
    Field(discriminator="type"),
]

MESSAGE_TYPES = frozenset({"hello", "move", "newGame", "newAIGame", "switchMode"})

_client_message = TypeAdapter(ClientMessage)


def decode(raw: Union[str, bytes, Mapping[str, Any]]) -> ClientMessage:
    """Parse and validate one inbound record, raising ``ProtocolError``."""

    if isinstance(raw, (str, bytes)):
        size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
        if size > MAX_FRAME_BYTES:
            raise ProtocolError("Message too large")
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise ProtocolError("Invalid JSON") from exc
    else:
        data = raw

    if not isinstance(data, dict):
        raise ProtocolError("Invalid message")

    kind = data.get("type")
    if not isinstance(kind, str) or not 0 < len(kind) <= MAX_TYPE_LENGTH:
        raise ProtocolError("Invalid type")
    if kind not in MESSAGE_TYPES:
        raise ProtocolError("Unknown message type")

    try:
        return _client_message.validate_python(data)
    except ValidationError as exc:
        raise ProtocolError(_describe(kind, exc)) from exc


def _describe(kind: str, exc: ValidationError) -> str:
    first = exc.errors()[0]
    # Leading loc entry is the union tag
    field = ".".join(str(part) for part in first["loc"][1:]) or "message"
    return f"Invalid {kind}: {field} {first['msg'].lower()}"


# ---- outbound payloads ----


def hello_ack(session_id: str, room: Room, color: Color) -> Payload:
    return {
        "type": "hello_ack",
        "sessionId": session_id,
        "roomId": room.id,
        "color": color,
    }


def players_summary(room: Room) -> Dict[str, bool]:
    return {
        "black": room.seats[BLACK] is not None,
        "white": room.seats[WHITE] is not None,
    }


def state_snapshot(room: Room, for_session: Optional[str] = None) -> Payload:
    # Copies: payloads are serialised later, after the room may have moved on
    return {
        "type": "state",
        "roomId": room.id,
        "roomName": room.name,
        "board": [row[:] for row in room.board],
        "moves": [dict(move) for move in room.moves],
        "nextTurn": room.next_turn,
        "youAre": room.color_of(for_session),
        "players": players_summary(room),
        "winner": room.winner,
        "mode": room.mode,
    }


def move_delta(x: int, y: int, color: Color, next_turn: Color) -> Payload:
    return {"type": "move", "x": x, "y": y, "color": color, "nextTurn": next_turn}


def result(winner: Color) -> Payload:
    return {"type": "result", "winner": winner}


def status(message: str, waiting: bool) -> Payload:
    return {"type": "status", "message": message, "waiting": waiting}


def error(message: str) -> Payload:
    return {"type": "error", "message": message}


def room_status(room: Room) -> Payload:
    """Status line broadcast after someone takes a seat in ``room``."""
    if room.mode == MODE_AI:
        return status(f"AI ready in {room.name}. Black moves first.", waiting=False)
    if room.filled_seats() == 2:
        return status(
            f"Both players connected in {room.name}. Black moves first.",
            waiting=False,
        )
    return status(f"Waiting for another player to join {room.name}…", waiting=True)
