"""Demo recordings: binary codec and replay driver.

File layout, little-endian and packed::

    int32 width, int32 height, int32 mine_count
    mine_count x (int32 x, int32 y)            column-major order
    int32 action_count
    action_count x (float64 pre_delay, int32 type, int32 x, int32 y)

The log's sentinel entry is never written.
"""
import logging
import os
import struct
from typing import Callable, Iterator, Optional

from sweeper.board import generate_board, mine_positions
from sweeper.engine import apply_action, new_session
from sweeper.errors import CorruptDemo, EmptyRecording, SweeperError
from sweeper.types import (
    Action,
    ActionLog,
    ActionType,
    Board,
    Demo,
    GameSession,
    GameStatus,
    ReplayOutcome,
    StepResult,
)

logger = logging.getLogger(__name__)

HEADER = struct.Struct('<iii')
MINE_RECORD = struct.Struct('<ii')
ACTION_COUNT = struct.Struct('<i')
ACTION_RECORD = struct.Struct('<diii')

# Largest board a demo may declare.
MAX_TILES = 1 << 16


def build_demo(board: Board, log: ActionLog) -> Demo:
    """Capture a board's mine layout together with its action log."""
    return Demo(
        width=board.width,
        height=board.height,
        mine_count=board.mine_count,
        mines=mine_positions(board),
        log=log,
    )


def encode(demo: Demo) -> bytes:
    if len(demo.log) == 0:
        raise EmptyRecording("Recording holds no actions")

    chunks = [HEADER.pack(demo.width, demo.height, demo.mine_count)]
    for x, y in demo.mines:
        chunks.append(MINE_RECORD.pack(x, y))
    chunks.append(ACTION_COUNT.pack(len(demo.log)))
    for action in demo.log.iterate():
        chunks.append(ACTION_RECORD.pack(action.pre_delay, int(action.type), action.x, action.y))
    return b''.join(chunks)


def _unpack(record: struct.Struct, data: bytes, offset: int, what: str) -> tuple:
    if offset + record.size > len(data):
        raise CorruptDemo(f"Demo truncated while reading {what} at byte {offset}")
    return record.unpack_from(data, offset)


def decode(data: bytes) -> Demo:
    """Parse demo bytes, checking sizes before anything is allocated."""
    offset = 0
    width, height, mine_count = _unpack(HEADER, data, offset, "header")
    offset += HEADER.size
    if width <= 0 or height <= 0 or mine_count < 0 or mine_count >= width * height:
        raise CorruptDemo(f"Invalid header: {width}x{height} with {mine_count} mines")
    if width * height > MAX_TILES:
        raise CorruptDemo(f"Board {width}x{height} exceeds {MAX_TILES} tiles")

    needed = mine_count * MINE_RECORD.size + ACTION_COUNT.size + ACTION_RECORD.size
    if len(data) - offset < needed:
        raise CorruptDemo(f"Demo truncated: {mine_count} mines need at least {needed} more bytes")

    mines = []
    seen = set()
    for index in range(mine_count):
        x, y = MINE_RECORD.unpack_from(data, offset)
        offset += MINE_RECORD.size
        if not (0 <= x < width and 0 <= y < height):
            raise CorruptDemo(f"Mine {index} at ({x}, {y}) is outside the board")
        if (x, y) in seen:
            raise CorruptDemo(f"Mine {index} at ({x}, {y}) is a duplicate")
        seen.add((x, y))
        mines.append((x, y))

    (action_count,) = ACTION_COUNT.unpack_from(data, offset)
    offset += ACTION_COUNT.size
    if action_count <= 0:
        raise CorruptDemo(f"Demo declares {action_count} actions")
    if len(data) - offset != action_count * ACTION_RECORD.size:
        raise CorruptDemo(
            f"Declared {action_count} actions but {len(data) - offset} bytes remain"
        )

    log = ActionLog()
    for index in range(action_count):
        pre_delay, tag, x, y = ACTION_RECORD.unpack_from(data, offset)
        offset += ACTION_RECORD.size
        try:
            action_type = ActionType(tag)
        except ValueError:
            raise CorruptDemo(f"Action {index} has unknown type {tag}") from None
        if not (0 <= x < width and 0 <= y < height):
            raise CorruptDemo(f"Action {index} targets ({x}, {y}) outside the board")
        if pre_delay < 0:
            raise CorruptDemo(f"Action {index} has negative delay {pre_delay}")
        log.append(Action(type=action_type, pre_delay=pre_delay, x=x, y=y))

    return Demo(width=width, height=height, mine_count=mine_count, mines=mines, log=log)


def save_demo(demo: Demo, path: str) -> int:
    """Write the demo to ``path``; nothing is written for an empty log."""
    data = encode(demo)
    with open(path, 'wb') as f:
        f.write(data)
    logger.info(f"Saved demo with {len(demo.log)} actions to {path}")
    return len(data)


def load_demo(path: str) -> Demo:
    with open(path, 'rb') as f:
        data = f.read()
    demo = decode(data)
    logger.info(f"Loaded {demo.width}x{demo.height} demo with {len(demo.log)} actions from {os.path.basename(path)}")
    return demo


def demo_session(demo: Demo) -> GameSession:
    """Fresh session on the demo's exact mine layout."""
    board = generate_board(demo.width, demo.height, demo.mine_count, mines=demo.mines)
    return new_session(board)


def step_outcome(result: StepResult) -> Optional[ReplayOutcome]:
    """Terminal outcome after a replayed step, or None to keep going."""
    if result.quit:
        return ReplayOutcome.QUIT
    if result.session.status == GameStatus.WON:
        return ReplayOutcome.WON
    if result.session.status == GameStatus.LOST:
        return ReplayOutcome.LOST
    return None


class ReplayDriver:
    """Feeds a demo's actions back through :func:`apply_action`.

    ``sleep`` receives each action's delay before it is applied; without one
    the driver only advances its logical clock.
    """

    def __init__(self, demo: Demo, sleep: Optional[Callable[[float], None]] = None):
        self.demo = demo
        self.sleep = sleep
        self.session = demo_session(demo)
        self.clock = 0.0
        self.outcome: Optional[ReplayOutcome] = None

    def steps(self) -> Iterator[StepResult]:
        """Replay from a fresh board; each call starts over."""
        self.session = demo_session(self.demo)
        self.clock = 0.0
        self.outcome = None
        for action in self.demo.log.iterate():
            if self.sleep is not None:
                self.sleep(action.pre_delay)
            self.clock += action.pre_delay

            try:
                result = apply_action(self.session, action)
            except SweeperError as error:
                logger.warning(f"Replayed {action.type.name} at ({action.x}, {action.y}) rejected: {error}")
                result = StepResult(session=self.session, action=action, error=str(error))
            yield result

            outcome = step_outcome(result)
            if outcome is not None:
                self.outcome = outcome
                return
        self.outcome = ReplayOutcome.EXHAUSTED

    def run(self) -> ReplayOutcome:
        for _ in self.steps():
            pass
        logger.info(f"Replay finished: {self.outcome.value} after {self.clock:.3f}s")
        return self.outcome
