"""Reveal engine and the shared apply-action entry point.

Live play and replay both go through :func:`apply_action`, so a recorded
session and its replay take identical paths through the board.
"""
import logging
from typing import List

from sweeper.board import neighbors_of, tile_at
from sweeper.errors import TileFlagged, TileNotHidden
from sweeper.types import (
    MOVE_ACTIONS,
    Action,
    ActionType,
    Board,
    GameSession,
    GameStatus,
    StepResult,
    Tile,
)

logger = logging.getLogger(__name__)

CURSOR_STEPS = {
    ActionType.MOVE_UP: (0, -1),
    ActionType.MOVE_DOWN: (0, 1),
    ActionType.MOVE_LEFT: (-1, 0),
    ActionType.MOVE_RIGHT: (1, 0),
}


def reveal(board: Board, x: int, y: int) -> bool:
    """Reveal the tile at (x, y), flood filling from zero-count tiles.

    Returns True when the tile is a mine (loss). Only a flagged tile targeted
    directly is refused; the fill uncovers flagged safe neighbors and leaves
    their flag set. Mines and revealed tiles are never expanded into.
    """
    tile = tile_at(board, x, y)
    if not tile.is_hidden:
        return tile.is_mine
    if tile.is_flagged:
        raise TileFlagged(f"Tile ({x}, {y}) is flagged")

    tile.is_hidden = False
    if tile.is_mine:
        return True
    if tile.neighbor_mines != 0:
        return False

    stack: List[Tile] = [tile]
    while stack:
        current = stack.pop()
        for neighbor in neighbors_of(board, current.x, current.y):
            if neighbor.is_mine or not neighbor.is_hidden:
                continue
            neighbor.is_hidden = False
            if neighbor.neighbor_mines == 0:
                stack.append(neighbor)
    return False


def toggle_flag(board: Board, x: int, y: int) -> bool:
    """Flip the flag on a hidden tile and return the new flag state."""
    tile = tile_at(board, x, y)
    if not tile.is_hidden:
        raise TileNotHidden(f"Tile ({x}, {y}) is already revealed")
    tile.is_flagged = not tile.is_flagged
    return tile.is_flagged


def check_win(board: Board) -> bool:
    """Won when every mine is flagged or every safe tile is revealed."""
    correct_flags = 0
    revealed_safe = 0
    for column in board.tiles:
        for tile in column:
            if tile.is_mine and tile.is_flagged:
                correct_flags += 1
            elif not tile.is_mine and not tile.is_hidden:
                revealed_safe += 1

    safe_tiles = board.width * board.height - board.mine_count
    return correct_flags == board.mine_count or revealed_safe == safe_tiles


def reveal_all_mines(board: Board) -> None:
    """Expose every mine for end-of-game presentation."""
    for column in board.tiles:
        for tile in column:
            if tile.is_mine:
                tile.is_hidden = False


def count_flags(board: Board) -> int:
    return sum(1 for column in board.tiles for tile in column if tile.is_flagged)


def count_revealed(board: Board) -> int:
    return sum(1 for column in board.tiles for tile in column if not tile.is_hidden)


def new_session(board: Board) -> GameSession:
    return GameSession(board=board)


def _move_cursor(session: GameSession, action_type: ActionType) -> None:
    dx, dy = CURSOR_STEPS[action_type]
    board = session.board
    session.cursor_x = min(max(session.cursor_x + dx, 0), board.width - 1)
    session.cursor_y = min(max(session.cursor_y + dy, 0), board.height - 1)


def apply_action(session: GameSession, action: Action) -> StepResult:
    """Apply one action to the session in place.

    Flag and Reveal target the action's own coordinates, not the cursor.
    OutOfBounds, TileFlagged and TileNotHidden propagate to the caller with
    the session left untouched. Actions on a finished session are ignored.
    """
    if session.is_over:
        return StepResult(session=session, action=action)

    board = session.board
    lost = False

    if action.type in MOVE_ACTIONS:
        _move_cursor(session, action.type)
        return StepResult(session=session, action=action)
    elif action.type == ActionType.QUIT:
        return StepResult(session=session, action=action, quit=True)
    elif action.type == ActionType.FLAG:
        toggle_flag(board, action.x, action.y)
    elif action.type == ActionType.REVEAL:
        lost = reveal(board, action.x, action.y)
    else:
        return StepResult(session=session, action=action)

    if lost:
        logger.info(f"Mine hit at ({action.x}, {action.y})")
        session.status = GameStatus.LOST
        reveal_all_mines(board)
    elif check_win(board):
        logger.info("Board cleared")
        session.status = GameStatus.WON
        reveal_all_mines(board)

    return StepResult(session=session, action=action)
