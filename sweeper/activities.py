"""Temporal activities wrapping the sweeper core."""
import copy
from temporalio import activity
from temporalio.exceptions import ApplicationError

from sweeper import demo as demo_codec
from sweeper.board import generate_board
from sweeper.engine import apply_action as apply_to_session
from sweeper.engine import new_session
from sweeper.errors import SweeperError
from sweeper.types import Action, Demo, GameConfig, GameSession, StepResult


def to_application_error(error: SweeperError) -> ApplicationError:
    """Domain errors are caller errors and must not be retried."""
    return ApplicationError(str(error), type=type(error).__name__, non_retryable=True)


@activity.defn
async def create_session(config: GameConfig) -> GameSession:
    """Create a session on a freshly randomized board."""
    try:
        board = generate_board(config.width, config.height, config.mine_count)
    except SweeperError as error:
        raise to_application_error(error) from error
    activity.logger.info(f"Created {config.width}x{config.height} board with {config.mine_count} mines")
    return new_session(board)


@activity.defn
async def create_replay_session(demo: Demo) -> GameSession:
    """Create a session on the demo's recorded mine layout."""
    try:
        return demo_codec.demo_session(demo)
    except SweeperError as error:
        raise to_application_error(error) from error


@activity.defn
async def apply_action(session: GameSession, action: Action) -> StepResult:
    """Apply one live or replayed action to a copy of the session."""
    new_session_state = copy.deepcopy(session)
    try:
        return apply_to_session(new_session_state, action)
    except SweeperError as error:
        raise to_application_error(error) from error


@activity.defn
async def save_demo(demo: Demo, path: str) -> int:
    """Write a recording to disk and return the number of bytes written."""
    try:
        return demo_codec.save_demo(demo, path)
    except SweeperError as error:
        raise to_application_error(error) from error


@activity.defn
async def load_demo(path: str) -> Demo:
    """Read and validate a recording from disk."""
    try:
        return demo_codec.load_demo(path)
    except SweeperError as error:
        raise to_application_error(error) from error
    except FileNotFoundError as error:
        raise ApplicationError(str(error), type="FileNotFoundError", non_retryable=True) from error
