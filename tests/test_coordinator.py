"""Tests for message dispatch, broadcasting, reconnection and AI pacing."""

import pytest

from gomoku.ai import choose_move
from gomoku.coordinator import OPPONENT_LEFT
from gomoku.game import BLACK, BOARD_SIZE, EMPTY, WHITE


def _hello(coordinator, conn, **fields):
    coordinator.handle(conn, {"type": "hello", **fields})
    return conn.last("hello_ack")


@pytest.fixture
def pvp(coordinator, connect):
    """Two players seated in the same PvP room, outboxes cleared."""
    black, white = connect(), connect()
    ack = _hello(coordinator, black, sessionId="alice", mode="pvp")
    _hello(coordinator, white, sessionId="bob", mode="pvp")
    room = coordinator.registry.get(ack["roomId"])
    black.clear()
    white.clear()
    return room, black, white


def test_hello_mints_session_and_sends_ack_snapshot_and_status(coordinator, connect):
    conn = connect()
    coordinator.handle(conn, '{"type": "hello", "mode": "pvp"}')

    kinds = [p["type"] for p in conn.sent]
    assert kinds == ["hello_ack", "state", "status"]
    ack = conn.sent[0]
    assert ack["sessionId"]
    assert ack["color"] == BLACK
    state = conn.sent[1]
    assert state["roomId"] == ack["roomId"]
    assert state["youAre"] == BLACK
    assert state["players"] == {"black": True, "white": False}
    assert conn.sent[2]["waiting"] is True


def test_reserved_ai_session_id_is_replaced(coordinator, connect):
    ack = _hello(coordinator, connect(), sessionId="AI", mode="ai")
    assert ack["sessionId"] != "AI"


def test_second_player_triggers_both_connected_status(coordinator, connect):
    black, white = connect(), connect()
    _hello(coordinator, black, sessionId="alice")
    black.clear()
    ack = _hello(coordinator, white, sessionId="bob")

    assert ack["color"] == WHITE
    assert black.last("status")["waiting"] is False
    assert "Both players connected" in white.last("status")["message"]


def test_move_is_broadcast_to_both_seats(coordinator, pvp):
    room, black, white = pvp
    coordinator.handle(black, {"type": "move", "x": 9, "y": 9})

    expected = {"type": "move", "x": 9, "y": 9, "color": BLACK, "nextTurn": WHITE}
    assert black.sent == [expected]
    assert white.sent == [expected]
    assert room.board[9][9] == BLACK


@pytest.mark.parametrize(
    "sender, payload, reason",
    [
        ("white", {"type": "move", "x": 0, "y": 0}, "Not your turn"),
        ("black", {"type": "move", "x": 9, "y": 9}, "Intersection occupied"),
        ("black", {"type": "move", "x": 19, "y": 0}, "Out-of-bounds move"),
        (
            "black",
            {"type": "move", "x": "1", "y": 0},
            "Invalid move: x input should be a valid integer",
        ),
        ("black", {"type": "resign"}, "Unknown message type"),
        ("black", "not json", "Invalid JSON"),
    ],
)
def test_rejections_reach_only_the_sender(coordinator, pvp, sender, payload, reason):
    room, black, white = pvp
    coordinator.handle(black, {"type": "move", "x": 9, "y": 9})
    coordinator.handle(white, {"type": "move", "x": 9, "y": 10})
    black.clear()
    white.clear()
    board = [row[:] for row in room.board]
    moves = list(room.moves)

    conns = {"black": black, "white": white}
    coordinator.handle(conns[sender], payload)

    other = white if sender == "black" else black
    assert conns[sender].sent == [{"type": "error", "message": reason}]
    assert other.sent == []
    assert room.board == board
    assert room.moves == moves
    assert room.next_turn == BLACK


def test_acting_before_hello_is_not_found(coordinator, connect):
    conn = connect()
    for payload in (
        {"type": "move", "x": 1, "y": 1},
        {"type": "newGame"},
        {"type": "switchMode", "mode": "ai"},
    ):
        coordinator.handle(conn, payload)
    assert [p["message"] for p in conn.sent] == ["Room not found"] * 3


def test_winning_move_sends_result(coordinator, pvp):
    room, black, white = pvp
    for i in range(4):
        coordinator.handle(black, {"type": "move", "x": 5 + i, "y": 9})
        coordinator.handle(white, {"type": "move", "x": 5 + i, "y": 12})
    coordinator.handle(black, {"type": "move", "x": 9, "y": 9})

    assert white.sent[-2] == {
        "type": "move", "x": 9, "y": 9, "color": BLACK, "nextTurn": EMPTY,
    }
    assert white.sent[-1] == {"type": "result", "winner": BLACK}

    white.clear()
    coordinator.handle(white, {"type": "move", "x": 0, "y": 0})
    assert white.sent == [{"type": "error", "message": "Game already finished"}]


def test_full_board_without_winner_reports_a_draw(coordinator, pvp):
    room, black, white = pvp
    room.board = [
        [WHITE if (x + 2 * y) % 4 < 2 else BLACK for x in range(BOARD_SIZE)]
        for y in range(BOARD_SIZE)
    ]
    room.board[0][2] = EMPTY

    coordinator.handle(black, {"type": "move", "x": 2, "y": 0})

    assert white.last("status")["message"] == "Board is full. The game is a draw."


def test_new_game_resets_board_for_both_players(coordinator, pvp):
    room, black, white = pvp
    coordinator.handle(black, {"type": "move", "x": 3, "y": 3})
    black.clear()
    white.clear()

    coordinator.handle(white, {"type": "newGame"})

    assert room.moves == []
    assert room.board[3][3] == EMPTY
    assert black.last("state")["youAre"] == BLACK
    assert white.last("state")["youAre"] == WHITE
    assert "New multiplayer game" in black.last("status")["message"]


def test_new_ai_game_outside_ai_room_is_rejected(coordinator, pvp):
    room, black, _ = pvp
    coordinator.handle(black, {"type": "newAIGame"})
    assert black.sent == [{"type": "error", "message": "Not in an AI room"}]


# ---- AI rooms ----


def _ai_room(coordinator, conn):
    ack = _hello(coordinator, conn, sessionId="solo", mode="ai")
    conn.clear()
    return coordinator.registry.get(ack["roomId"])


def test_ai_replies_once_after_the_delay(coordinator, scheduler, connect):
    human = connect()
    room = _ai_room(coordinator, human)

    coordinator.handle(human, {"type": "move", "x": 9, "y": 9})
    assert scheduler.pending == 1
    assert len(room.moves) == 1

    scheduler.advance(0.1)
    assert len(room.moves) == 1

    scheduler.advance(0.1)
    assert len(room.moves) == 2
    reply = human.sent[-1]
    assert reply["type"] == "move"
    assert reply["color"] == WHITE
    assert reply["nextTurn"] == BLACK
    assert room.next_turn == BLACK
    assert scheduler.pending == 0


def test_ai_blocks_a_four(coordinator, scheduler, connect):
    human = connect()
    room = _ai_room(coordinator, human)
    for x in range(3):
        room.board[0][x] = BLACK
        room.board[18][x] = WHITE

    coordinator.handle(human, {"type": "move", "x": 3, "y": 0})
    scheduler.advance(0.2)

    assert room.moves[-1] == {"x": 4, "y": 0, "color": WHITE}


def test_ai_prefers_winning_to_blocking(coordinator, scheduler, connect):
    human = connect()
    room = _ai_room(coordinator, human)
    for x in range(3):
        room.board[0][x] = BLACK
    for x in range(4):
        room.board[18][x] = WHITE

    coordinator.handle(human, {"type": "move", "x": 3, "y": 0})
    scheduler.advance(0.2)

    assert room.moves[-1] == {"x": 4, "y": 18, "color": WHITE}
    assert room.winner == WHITE
    assert human.last("result") == {"type": "result", "winner": WHITE}


def test_stale_ai_reply_is_dropped_after_reset(coordinator, scheduler, connect):
    human = connect()
    room = _ai_room(coordinator, human)

    coordinator.handle(human, {"type": "move", "x": 9, "y": 9})
    coordinator.handle(human, {"type": "newAIGame"})
    human.clear()
    scheduler.advance(1.0)

    assert room.moves == []
    assert room.next_turn == BLACK
    assert human.sent == []


def test_reset_and_new_move_within_delay_applies_only_the_new_reply(
    coordinator, scheduler, connect
):
    human = connect()
    room = _ai_room(coordinator, human)

    coordinator.handle(human, {"type": "move", "x": 9, "y": 9})
    coordinator.handle(human, {"type": "newAIGame"})
    coordinator.handle(human, {"type": "move", "x": 0, "y": 0})
    assert scheduler.pending == 2
    expected = choose_move(room.board, WHITE)
    scheduler.advance(0.2)

    assert len(room.moves) == 2
    assert room.moves[0] == {"x": 0, "y": 0, "color": BLACK}
    assert room.moves[1] == {"x": expected[0], "y": expected[1], "color": WHITE}
    assert room.board[9][9] == EMPTY


def test_ai_reply_survives_disconnect(coordinator, scheduler, connect):
    human = connect()
    room = _ai_room(coordinator, human)

    coordinator.handle(human, {"type": "move", "x": 9, "y": 9})
    human.is_open = False
    coordinator.disconnect(human)
    scheduler.advance(0.2)

    assert len(room.moves) == 2


def test_only_the_human_restarts_an_ai_game(coordinator, connect):
    human = connect()
    room = _ai_room(coordinator, human)
    coordinator.handle(human, {"type": "move", "x": 9, "y": 9})
    human.clear()

    coordinator.handle(human, {"type": "newAIGame"})

    assert room.moves == []
    assert human.last("state")["moves"] == []
    assert human.last("status")["message"] == "New AI game started. Black moves first."


# ---- disconnects and rejoin ----


def test_disconnect_keeps_seat_and_tells_opponent(coordinator, pvp):
    room, black, white = pvp
    black.is_open = False
    coordinator.disconnect(black)

    assert room.seats[BLACK].session_id == "alice"
    assert room.seats[BLACK].connection is None
    assert white.last("status")["waiting"] is True


def test_repeated_hello_into_another_room_tells_the_old_opponent(coordinator, pvp):
    room, black, white = pvp
    ack = _hello(coordinator, black, sessionId="alice", mode="ai")

    assert ack["roomId"] != room.id
    assert room.seats[BLACK].session_id == "alice"
    assert room.seats[BLACK].connection is None
    assert white.last("status") == {
        "type": "status",
        "message": OPPONENT_LEFT,
        "waiting": True,
    }


def test_repeated_hello_into_the_same_room_keeps_the_opponent_connected(
    coordinator, pvp
):
    room, black, white = pvp
    _hello(coordinator, black, sessionId="alice", roomId=room.id)

    assert room.seats[BLACK].connection is black
    assert white.last("status")["waiting"] is False


def test_rejoin_restores_board_and_allows_play(coordinator, pvp, connect):
    room, black, white = pvp
    coordinator.handle(black, {"type": "move", "x": 9, "y": 9})
    coordinator.handle(white, {"type": "move", "x": 10, "y": 10})
    black.is_open = False
    coordinator.disconnect(black)
    moves = list(room.moves)

    again = connect()
    ack = _hello(coordinator, again, sessionId="alice", roomId=room.id)

    assert ack["roomId"] == room.id
    assert ack["color"] == BLACK
    state = again.last("state")
    assert state["moves"] == moves
    assert state["board"][10][10] == WHITE
    assert state["nextTurn"] == BLACK

    coordinator.handle(again, {"type": "move", "x": 11, "y": 11})
    assert room.moves[:2] == moves
    assert white.last("move")["x"] == 11


def test_rejoin_from_a_second_tab_supersedes_the_first(coordinator, pvp, connect):
    room, black, _ = pvp
    tab = connect()
    _hello(coordinator, tab, sessionId="alice", roomId=room.id)

    assert black.last("error")["message"] == "Session resumed on another connection"
    assert room.seats[BLACK].connection is tab

    black.clear()
    coordinator.handle(black, {"type": "move", "x": 0, "y": 0})
    assert black.sent == [{"type": "error", "message": "Room not found"}]


def test_unknown_room_on_hello_falls_back_to_matchmaking(coordinator, connect):
    conn = connect()
    ack = _hello(coordinator, conn, sessionId="alice", roomId="gone", mode="ai")
    room = coordinator.registry.get(ack["roomId"])
    assert room.mode == "ai"


# ---- mode switching ----


def test_switch_to_ai_and_back_returns_to_the_same_pvp_room(coordinator, pvp):
    room, black, white = pvp
    coordinator.handle(black, {"type": "move", "x": 4, "y": 4})
    white.clear()

    coordinator.handle(black, {"type": "switchMode", "mode": "ai"})

    ai_ack = black.last("hello_ack")
    ai_room = coordinator.registry.get(ai_ack["roomId"])
    assert ai_room.mode == "ai"
    assert room.seats[BLACK] is None
    assert room.moves == []
    assert white.last("state")["players"] == {"black": False, "white": True}
    assert white.last("status")["waiting"] is True

    coordinator.handle(black, {"type": "switchMode", "mode": "pvp"})

    back = black.last("hello_ack")
    assert back["roomId"] == room.id
    assert back["color"] == BLACK
    assert ai_room.seats[BLACK] is None
    assert "Both players connected" in white.last("status")["message"]


def test_switch_to_pvp_honours_prefer_room_id(coordinator, connect):
    host = connect()
    host_ack = _hello(coordinator, host, sessionId="host", mode="pvp")
    solo = connect()
    _hello(coordinator, solo, sessionId="solo", mode="ai")

    coordinator.handle(
        solo,
        {"type": "switchMode", "mode": "pvp", "preferRoomId": host_ack["roomId"]},
    )

    ack = solo.last("hello_ack")
    assert ack["roomId"] == host_ack["roomId"]
    assert ack["color"] == WHITE
