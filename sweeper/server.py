"""Flask adapter exposing live sessions and demo replays."""
import asyncio
import logging
from datetime import datetime
from flask import Flask, request, jsonify
from flask_cors import CORS
from temporalio.client import (
    Client,
    WorkflowExecutionStatus,
    WorkflowFailureError,
    WorkflowUpdateFailedError,
)
from temporalio.exceptions import ApplicationError
import uuid

from sweeper.workflows import GameWorkflow, ReplayWorkflow
from sweeper.types import ActionRequest, ActionType, GameConfig
from sweeper.client_provider import get_temporal_client, load_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

settings = load_settings()

# Global client reference
temporal_client: Client | None = None

ACTION_NAMES = {action_type.name.lower(): action_type for action_type in ActionType}

ERROR_STATUS = {
    'OutOfBounds': 400,
    'TileFlagged': 409,
    'TileNotHidden': 409,
    'EmptyRecording': 409,
    'InvalidConfiguration': 400,
    'CorruptDemo': 422,
    'FileNotFoundError': 404,
}


def get_attr(obj, key):
    """Get attribute from either dict or object."""
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def serialize_tile(tile):
    hidden = get_attr(tile, 'is_hidden')
    return {
        'x': get_attr(tile, 'x'),
        'y': get_attr(tile, 'y'),
        'isHidden': hidden,
        'isFlagged': get_attr(tile, 'is_flagged'),
        # hidden tiles never leak their contents
        'isMine': None if hidden else get_attr(tile, 'is_mine'),
        'neighborMines': None if hidden else get_attr(tile, 'neighbor_mines'),
    }


def serialize_session(session):
    """Convert a session to the visibility state the UI renders."""
    if not session:
        return None

    board = get_attr(session, 'board')
    tiles = [[serialize_tile(tile) for tile in column] for column in get_attr(board, 'tiles') or []]

    status = get_attr(session, 'status')
    status_str = str(status.value if hasattr(status, 'value') else status).upper()

    return {
        'board': {
            'tiles': tiles,
            'width': get_attr(board, 'width'),
            'height': get_attr(board, 'height'),
            'mineCount': get_attr(board, 'mine_count'),
        },
        'cursor': {'x': get_attr(session, 'cursor_x'), 'y': get_attr(session, 'cursor_y')},
        'status': status_str,
    }


def parse_config(data):
    config_data = (data or {}).get('config') or {}
    if not all(isinstance(config_data.get(key), int) for key in ('width', 'height', 'mineCount')):
        return None
    return GameConfig(
        width=config_data['width'],
        height=config_data['height'],
        mine_count=config_data['mineCount'],
    )


def parse_action(data):
    data = data or {}
    action_type = ACTION_NAMES.get(str(data.get('action', '')).lower())
    if action_type is None or not isinstance(data.get('x'), int) or not isinstance(data.get('y'), int):
        return None
    return ActionRequest(type=action_type, x=data['x'], y=data['y'])


def update_error_response(error: WorkflowUpdateFailedError):
    cause = error.cause
    if isinstance(cause, ApplicationError):
        return jsonify({'error': cause.message, 'kind': cause.type}), ERROR_STATUS.get(cause.type, 500)
    return jsonify({'error': 'Update failed'}), 500


def serialize_summary(summary):
    if not summary:
        return None
    outcome = get_attr(summary, 'outcome')
    status = get_attr(summary, 'status')
    return {
        'outcome': str(outcome.value if hasattr(outcome, 'value') else outcome).upper(),
        'status': str(status.value if hasattr(status, 'value') else status).upper(),
        'steps': get_attr(summary, 'steps'),
        'message': get_attr(summary, 'message'),
    }


def failure_cause(error):
    """First ApplicationError in an exception's cause chain."""
    cause = error
    while cause is not None:
        if isinstance(cause, ApplicationError):
            return cause
        cause = cause.__cause__
    return None


def replay_failure_response(replay_id, error: WorkflowFailureError):
    cause = failure_cause(error)
    if cause is None:
        logger.error(f"Replay {replay_id} did not complete: {error.cause}")
        return jsonify({'replayId': replay_id, 'error': 'Replay did not complete'}), 500
    logger.warning(f"Replay {replay_id} failed: {cause.type}: {cause.message}")
    return jsonify({
        'replayId': replay_id,
        'error': cause.message,
        'kind': cause.type,
    }), ERROR_STATUS.get(cause.type, 500)


async def query_with_retry(handle, query, max_retries=5):
    """Query until the workflow has created its session."""
    for i in range(max_retries):
        try:
            session = await handle.query(query)
        except Exception as error:
            if i == max_retries - 1:
                raise error
            session = None
        if session is not None:
            return session
        logger.info(f"Session not ready yet, retrying in {(i + 1) * 100}ms...")
        await asyncio.sleep((i + 1) * 0.1)
    return None


@app.route('/api/games', methods=['POST'])
def create_game():
    """Create a new game."""
    config = parse_config(request.get_json(silent=True))
    if config is None:
        return jsonify({'error': 'Invalid game configuration'}), 400
    if config.width <= 0 or config.height <= 0 or not 0 <= config.mine_count < config.width * config.height:
        return jsonify({'error': 'Board dimensions or mine count out of range'}), 400

    game_id = str(uuid.uuid4())
    try:
        async def start_workflow():
            await temporal_client.start_workflow(
                GameWorkflow.run,
                args=[game_id, config],
                id=game_id,
                task_queue=settings.task_queue,
            )
            handle = temporal_client.get_workflow_handle(game_id)
            return await query_with_retry(handle, GameWorkflow.get_session_query)

        session = asyncio.run(start_workflow())
    except Exception as error:
        logger.error(f"Error creating game: {error}")
        return jsonify({'error': 'Failed to create game'}), 500

    return jsonify({'gameId': game_id, 'session': serialize_session(session)})


@app.route('/api/games/<game_id>', methods=['GET'])
def get_game_state(game_id):
    """Get the session of a live game."""
    try:
        async def query_game():
            handle = temporal_client.get_workflow_handle(game_id)
            return await handle.query(GameWorkflow.get_session_query)

        session = asyncio.run(query_game())
    except Exception as error:
        logger.error(f"Error getting game state: {error}")
        return jsonify({'error': 'Game not found'}), 404

    return jsonify({'gameId': game_id, 'session': serialize_session(session)})


@app.route('/api/games/<game_id>/actions', methods=['POST'])
def make_action(game_id):
    """Apply a live action."""
    action_request = parse_action(request.get_json(silent=True))
    if action_request is None:
        return jsonify({'error': 'Invalid action request'}), 400

    try:
        async def execute_action():
            handle = temporal_client.get_workflow_handle(game_id)
            return await handle.execute_update(GameWorkflow.apply_action_update, action_request)

        session = asyncio.run(execute_action())
    except WorkflowUpdateFailedError as error:
        return update_error_response(error)
    except Exception as error:
        logger.error(f"Error applying action: {error}")
        return jsonify({'error': 'Failed to apply action'}), 500

    return jsonify({'gameId': game_id, 'session': serialize_session(session)})


@app.route('/api/games/<game_id>/demo', methods=['POST'])
def save_game_demo(game_id):
    """Record the game so far to a demo file."""
    path = (request.get_json(silent=True) or {}).get('path')
    if not isinstance(path, str) or not path:
        return jsonify({'error': 'Missing demo path'}), 400

    try:
        async def execute_save():
            handle = temporal_client.get_workflow_handle(game_id)
            return await handle.execute_update(GameWorkflow.save_demo_update, path)

        size = asyncio.run(execute_save())
    except WorkflowUpdateFailedError as error:
        return update_error_response(error)
    except Exception as error:
        logger.error(f"Error saving demo: {error}")
        return jsonify({'error': 'Failed to save demo'}), 500

    return jsonify({'gameId': game_id, 'path': path, 'bytes': size})


@app.route('/api/replays', methods=['POST'])
def start_replay():
    """Replay a demo file."""
    path = (request.get_json(silent=True) or {}).get('path')
    if not isinstance(path, str) or not path:
        return jsonify({'error': 'Missing demo path'}), 400

    replay_id = str(uuid.uuid4())
    try:
        async def start_workflow():
            await temporal_client.start_workflow(
                ReplayWorkflow.run,
                args=[replay_id, path],
                id=replay_id,
                task_queue=settings.task_queue,
            )
        asyncio.run(start_workflow())
    except Exception as error:
        logger.error(f"Error starting replay: {error}")
        return jsonify({'error': 'Failed to start replay'}), 500

    return jsonify({'replayId': replay_id})


@app.route('/api/replays/<replay_id>', methods=['GET'])
def get_replay_state(replay_id):
    """Get the session of a running replay, or the result of a finished one."""
    try:
        async def inspect_replay():
            handle = temporal_client.get_workflow_handle_for(ReplayWorkflow.run, replay_id)
            description = await handle.describe()
            if description.status == WorkflowExecutionStatus.RUNNING:
                return await handle.query(ReplayWorkflow.get_session_query), None
            # Raises WorkflowFailureError for a failed replay.
            summary = await handle.result()
            return await handle.query(ReplayWorkflow.get_session_query), summary

        session, summary = asyncio.run(inspect_replay())
    except WorkflowFailureError as error:
        return replay_failure_response(replay_id, error)
    except Exception as error:
        logger.error(f"Error getting replay state: {error}")
        return jsonify({'error': 'Replay not found'}), 404

    return jsonify({
        'replayId': replay_id,
        'finished': summary is not None,
        'result': serialize_summary(summary),
        'session': serialize_session(session),
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now().isoformat()
    })


async def initialize_client():
    """Initialize Temporal client."""
    global temporal_client
    temporal_client = await get_temporal_client(settings)
    logger.info("Connected to Temporal server")


def main():
    """Start the Flask server."""
    try:
        asyncio.run(initialize_client())

        logger.info(f"Sweeper server running on http://localhost:{settings.port}")
        logger.info("Make sure to start the Temporal worker in another terminal: python -m sweeper.worker")

        app.run(host='0.0.0.0', port=settings.port, debug=False)

    except Exception as error:
        logger.error(f"Failed to start server: {error}")
        exit(1)


if __name__ == "__main__":
    main()
