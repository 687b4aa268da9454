"""Type definitions for the sweeper engine and its demo recordings."""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterator, List, Optional, Tuple


@dataclass
class Tile:
    """A single grid cell."""
    x: int
    y: int
    is_mine: bool = False
    is_hidden: bool = True
    is_flagged: bool = False
    neighbor_mines: int = 0


@dataclass
class Board:
    """Rectangular grid of tiles, stored column-major as ``tiles[x][y]``."""
    width: int
    height: int
    mine_count: int
    tiles: List[List[Tile]]


class ActionType(IntEnum):
    """Action tags. The values are the demo file tags."""
    NONE = 0
    MOVE_UP = 1
    MOVE_DOWN = 2
    MOVE_LEFT = 3
    MOVE_RIGHT = 4
    FLAG = 5
    REVEAL = 6
    QUIT = 7


MOVE_ACTIONS = (ActionType.MOVE_UP, ActionType.MOVE_DOWN, ActionType.MOVE_LEFT, ActionType.MOVE_RIGHT)


@dataclass
class Action:
    """One player or replayed input event.

    ``pre_delay`` is the number of seconds since the previous action.
    """
    type: ActionType
    pre_delay: float = 0.0
    x: int = 0
    y: int = 0


def _sentinel_entries() -> List[Action]:
    return [Action(type=ActionType.NONE)]


@dataclass
class ActionLog:
    """Append-only action history.

    Entry 0 is a sentinel standing for the initial board draw; it is never
    replayed or written to a demo file.
    """
    entries: List[Action] = field(default_factory=_sentinel_entries)

    def append(self, action: Action) -> None:
        if action.pre_delay < 0:
            raise ValueError(f"pre_delay must be non-negative, got {action.pre_delay}")
        self.entries.append(action)

    def iterate(self) -> Iterator[Action]:
        """Yield the recorded actions in order, skipping the sentinel."""
        for action in self.entries[1:]:
            yield action

    def __iter__(self) -> Iterator[Action]:
        return self.iterate()

    def __len__(self) -> int:
        return max(len(self.entries) - 1, 0)


@dataclass
class Demo:
    """A replayable recording: exact mine layout plus the action log."""
    width: int
    height: int
    mine_count: int
    mines: List[Tuple[int, int]]
    log: ActionLog = field(default_factory=ActionLog)


class GameStatus(str, Enum):
    """Possible session states."""
    IN_PROGRESS = 'IN_PROGRESS'
    WON = 'WON'
    LOST = 'LOST'
    CLOSED = 'CLOSED'


@dataclass
class GameSession:
    """State owned by exactly one session driver."""
    board: Board
    cursor_x: int = 0
    cursor_y: int = 0
    status: GameStatus = GameStatus.IN_PROGRESS

    @property
    def is_over(self) -> bool:
        return self.status != GameStatus.IN_PROGRESS


@dataclass
class StepResult:
    """Outcome of applying one action."""
    session: GameSession
    action: Action
    quit: bool = False
    error: Optional[str] = None


class ReplayOutcome(str, Enum):
    """Why a replay stopped."""
    QUIT = 'QUIT'
    WON = 'WON'
    LOST = 'LOST'
    EXHAUSTED = 'EXHAUSTED'


@dataclass
class GameConfig:
    """Configuration for creating a new game."""
    width: int = 15
    height: int = 15
    mine_count: int = 35


@dataclass
class ActionRequest:
    """Live action submitted by the shell."""
    type: ActionType
    x: int = 0
    y: int = 0


@dataclass
class ReplaySummary:
    """Result returned by a finished replay workflow."""
    outcome: ReplayOutcome
    status: GameStatus
    steps: int
    message: Optional[str] = None
