"""One-ply heuristic AI for five-in-a-row: win, else block, else best-scored cell."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .game import (
    BOARD_SIZE,
    DIRECTIONS,
    EMPTY,
    Board,
    Color,
    check_winner,
    in_bounds,
    opponent,
)

Point = Tuple[int, int]

CENTER = BOARD_SIZE // 2
CENTER_WEIGHT = 0.5
ATTACK_WEIGHT = 1.2


def _empty_cells(board: Board) -> Iterator[Point]:
    # Row-major scan order decides every tie below
    for y in range(BOARD_SIZE):
        for x in range(BOARD_SIZE):
            if board[y][x] == EMPTY:
                yield x, y


def find_winning_move(board: Board, color: Color) -> Optional[Point]:
    """First empty cell (row-major) where ``color`` would complete five."""
    for x, y in _empty_cells(board):
        board[y][x] = color
        try:
            wins = check_winner(board, x, y) == color
        finally:
            board[y][x] = EMPTY
        if wins:
            return x, y
    return None


def line_potential(
    board: Board, x: int, y: int, dx: int, dy: int, color: Color
) -> int:
    """Score the run ``color`` would form through (x, y) along one axis."""
    count, open_ends = 1, 0

    fx, fy = x + dx, y + dy
    while in_bounds(fx, fy) and board[fy][fx] == color:
        count += 1
        fx += dx
        fy += dy
    if in_bounds(fx, fy) and board[fy][fx] == EMPTY:
        open_ends += 1

    bx, by = x - dx, y - dy
    while in_bounds(bx, by) and board[by][bx] == color:
        count += 1
        bx -= dx
        by -= dy
    if in_bounds(bx, by) and board[by][bx] == EMPTY:
        open_ends += 1

    if count >= 5:
        return 100_000
    if count == 4 and open_ends > 0:
        return 10_000
    if count == 3 and open_ends == 2:
        return 5_000
    if count == 3 and open_ends == 1:
        return 1_000
    if count == 2 and open_ends == 2:
        return 300
    if count == 2 and open_ends == 1:
        return 100
    return 10 * count + 5 * open_ends


def heuristic_score(board: Board, x: int, y: int, me: Color, opp: Color) -> float:
    center_bias = -(abs(x - CENTER) + abs(y - CENTER))
    score = center_bias * CENTER_WEIGHT
    for dx, dy in DIRECTIONS:
        score += ATTACK_WEIGHT * line_potential(board, x, y, dx, dy, me)
        score += line_potential(board, x, y, dx, dy, opp)
    return score


def choose_move(board: Board, mover: Color) -> Optional[Point]:
    """Pick a move for ``mover``, or ``None`` if the board is full.

    Priority is strict: an immediate win, then blocking the opponent's
    immediate win, then the highest heuristic score (first found on ties).
    """
    opp = opponent(mover)

    win = find_winning_move(board, mover)
    if win is not None:
        return win

    block = find_winning_move(board, opp)
    if block is not None:
        return block

    best: Optional[Point] = None
    best_score = float("-inf")
    for x, y in _empty_cells(board):
        score = heuristic_score(board, x, y, mover, opp)
        if score > best_score:
            best_score, best = score, (x, y)
    return best


@dataclass
class HeuristicAI:
    """Synthetic opponent occupying one seat of an AI room."""

    player: Color

    # ---- public API ----

    def choose(self, board: Board) -> Optional[Point]:
        return choose_move(board, self.player)
