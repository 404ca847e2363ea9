"""Core rules for five-in-a-row on a fixed 19x19 grid."""

from __future__ import annotations

from typing import List, Tuple

Color = int  # EMPTY, BLACK or WHITE
Board = List[List[Color]]

EMPTY: Color = 0
BLACK: Color = 1
WHITE: Color = 2

COLOR_NAMES = {EMPTY: "none", BLACK: "black", WHITE: "white"}

BOARD_SIZE = 19
WIN_LENGTH = 5

# Horizontal, vertical, diagonal and anti-diagonal
DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (1, 0),
    (0, 1),
    (1, 1),
    (1, -1),
)


def make_board() -> Board:
    return [[EMPTY] * BOARD_SIZE for _ in range(BOARD_SIZE)]


def opponent(color: Color) -> Color:
    return WHITE if color == BLACK else BLACK


def in_bounds(x: object, y: object) -> bool:
    # bool is an int subclass; True/False are not coordinates
    if type(x) is not int or type(y) is not int:
        return False
    return 0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE


def apply_move(board: Board, x: int, y: int, color: Color) -> None:
    """Write ``color`` at (x, y). Cells are write-once for the life of a game."""
    if not in_bounds(x, y):
        raise ValueError("Out-of-bounds move")
    if board[y][x] != EMPTY:
        raise ValueError("Intersection occupied")
    board[y][x] = color


def _run_length(board: Board, x: int, y: int, dx: int, dy: int, color: Color) -> int:
    count = 0
    nx, ny = x + dx, y + dy
    while in_bounds(nx, ny) and board[ny][nx] == color:
        count += 1
        nx += dx
        ny += dy
    return count


def check_winner(board: Board, x: int, y: int) -> Color:
    """Return the color at (x, y) if it completes a run of five, else EMPTY.

    Only the four lines through the given cell are inspected, so this is
    meaningful right after a stone has been placed there.
    """
    color = board[y][x]
    if color == EMPTY:
        return EMPTY
    for dx, dy in DIRECTIONS:
        count = 1
        count += _run_length(board, x, y, dx, dy, color)
        count += _run_length(board, x, y, -dx, -dy, color)
        if count >= WIN_LENGTH:
            return color
    return EMPTY


def is_full(board: Board) -> bool:
    return all(cell != EMPTY for row in board for cell in row)
