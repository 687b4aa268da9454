"""Board model: generation, mine placement and adjacency."""
import logging
import random
from typing import Iterable, List, Optional, Set, Tuple

from sweeper.errors import InvalidConfiguration, OutOfBounds
from sweeper.types import Board, Tile

logger = logging.getLogger(__name__)

NEIGHBOR_OFFSETS = [
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1),  (0, 1),  (1, 1),
]


def tile_at(board: Board, x: int, y: int) -> Tile:
    """Return the tile at (x, y) or raise OutOfBounds."""
    if x < 0 or x >= board.width or y < 0 or y >= board.height:
        raise OutOfBounds(x, y, board.width, board.height)
    return board.tiles[x][y]


def neighbors_of(board: Board, x: int, y: int) -> List[Tile]:
    """Return the existing 8-directional neighbors of (x, y)."""
    tile_at(board, x, y)
    neighbors = []
    for dx, dy in NEIGHBOR_OFFSETS:
        nx, ny = x + dx, y + dy
        if 0 <= nx < board.width and 0 <= ny < board.height:
            neighbors.append(board.tiles[nx][ny])
    return neighbors


def count_neighbor_mines(board: Board, x: int, y: int) -> int:
    """Count the number of mines in neighboring tiles."""
    return sum(1 for neighbor in neighbors_of(board, x, y) if neighbor.is_mine)


def _random_mines(width: int, height: int, mine_count: int, rng) -> List[Tuple[int, int]]:
    placed: Set[Tuple[int, int]] = set()
    mines = []
    while len(mines) < mine_count:
        position = (rng.randrange(width), rng.randrange(height))
        # collision, draw again
        if position in placed:
            continue
        placed.add(position)
        mines.append(position)
    return mines


def generate_board(
    width: int,
    height: int,
    mine_count: int,
    mines: Optional[Iterable[Tuple[int, int]]] = None,
    rng: Optional[random.Random] = None,
) -> Board:
    """Create a board with hidden, unflagged tiles.

    With ``mines`` the layout is placed exactly as given (replay path),
    otherwise ``mine_count`` distinct positions are drawn from ``rng``.
    Neighbor counts are computed once here and never again.
    """
    if width <= 0 or height <= 0:
        raise InvalidConfiguration(f"Board dimensions must be positive, got {width}x{height}")
    if mine_count < 0 or mine_count >= width * height:
        raise InvalidConfiguration(
            f"Mine count {mine_count} does not fit a {width}x{height} board"
        )

    tiles = [[Tile(x=x, y=y) for y in range(height)] for x in range(width)]
    board = Board(width=width, height=height, mine_count=mine_count, tiles=tiles)

    if mines is None:
        positions = _random_mines(width, height, mine_count, rng or random)
    else:
        positions = [tuple(position) for position in mines]
        if len(positions) != mine_count:
            raise InvalidConfiguration(
                f"Expected {mine_count} mine positions, got {len(positions)}"
            )
        if len(set(positions)) != len(positions):
            raise InvalidConfiguration("Mine positions contain duplicates")

    for x, y in positions:
        tile_at(board, x, y).is_mine = True

    for column in tiles:
        for tile in column:
            tile.neighbor_mines = count_neighbor_mines(board, tile.x, tile.y)

    logger.debug(f"Generated {width}x{height} board with {mine_count} mines")
    return board


def mine_positions(board: Board) -> List[Tuple[int, int]]:
    """Mine coordinates in column-major order (x outer, y inner)."""
    return [
        (tile.x, tile.y)
        for column in board.tiles
        for tile in column
        if tile.is_mine
    ]
