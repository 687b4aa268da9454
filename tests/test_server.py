from types import SimpleNamespace

import pytest
from temporalio.client import WorkflowExecutionStatus, WorkflowFailureError
from temporalio.exceptions import ApplicationError

from sweeper import server
from sweeper.board import generate_board
from sweeper.engine import new_session, reveal
from sweeper.types import ActionType, GameStatus, ReplayOutcome, ReplaySummary


@pytest.fixture
def client():
    server.app.config['TESTING'] = True
    with server.app.test_client() as client:
        yield client


def test_health_check(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'OK'


@pytest.mark.parametrize("payload", [
    {},
    {'config': {'width': 3, 'height': 3}},
    {'config': {'width': '3', 'height': 3, 'mineCount': 1}},
    {'config': {'width': 3, 'height': 3, 'mineCount': 9}},
    {'config': {'width': 0, 'height': 3, 'mineCount': 0}},
])
def test_create_game_validates_config(client, payload):
    response = client.post('/api/games', json=payload)

    assert response.status_code == 400


@pytest.mark.parametrize("payload", [
    {},
    {'action': 'explode', 'x': 0, 'y': 0},
    {'action': 'reveal', 'x': '1', 'y': 0},
    {'action': 'flag', 'x': 1},
])
def test_action_requests_are_validated(client, payload):
    response = client.post('/api/games/some-game/actions', json=payload)

    assert response.status_code == 400


def test_demo_and_replay_require_a_path(client):
    assert client.post('/api/games/some-game/demo', json={}).status_code == 400
    assert client.post('/api/replays', json={'path': ''}).status_code == 400


def test_parse_action_accepts_every_action_name():
    for action_type in ActionType:
        request = server.parse_action({'action': action_type.name.lower(), 'x': 1, 'y': 2})
        assert request.type == action_type
        assert (request.x, request.y) == (1, 2)


def test_serialized_session_hides_unrevealed_tiles():
    session = new_session(generate_board(3, 3, 1, mines=[(0, 0)]))
    reveal(session.board, 1, 1)

    data = server.serialize_session(session)

    assert data['status'] == 'IN_PROGRESS'
    assert data['board']['mineCount'] == 1
    mine = data['board']['tiles'][0][0]
    assert mine['isHidden'] is True
    assert mine['isMine'] is None
    shown = data['board']['tiles'][1][1]
    assert shown == {
        'x': 1,
        'y': 1,
        'isHidden': False,
        'isFlagged': False,
        'isMine': False,
        'neighborMines': 1,
    }


def test_serialize_missing_session():
    assert server.serialize_session(None) is None


class FakeReplayHandle:
    def __init__(self, status, session=None, summary=None, failure=None):
        self.status = status
        self.session = session
        self.summary = summary
        self.failure = failure

    async def describe(self):
        return SimpleNamespace(status=self.status)

    async def result(self):
        if self.failure is not None:
            raise self.failure
        return self.summary

    async def query(self, query):
        return self.session


class FakeClient:
    def __init__(self, handle):
        self.handle = handle

    def get_workflow_handle_for(self, run, workflow_id):
        return self.handle


def won_session():
    session = new_session(generate_board(2, 1, 1, mines=[(0, 0)]))
    reveal(session.board, 1, 0)
    session.status = GameStatus.WON
    return session


def test_running_replay_returns_session(client, monkeypatch):
    handle = FakeReplayHandle(WorkflowExecutionStatus.RUNNING, session=won_session())
    monkeypatch.setattr(server, 'temporal_client', FakeClient(handle))

    response = client.get('/api/replays/r-1')

    assert response.status_code == 200
    body = response.get_json()
    assert body['finished'] is False
    assert body['result'] is None
    assert body['session']['board']['width'] == 2


def test_finished_replay_returns_summary(client, monkeypatch):
    summary = ReplaySummary(
        outcome=ReplayOutcome.EXHAUSTED,
        status=GameStatus.IN_PROGRESS,
        steps=3,
        message="no more actions",
    )
    handle = FakeReplayHandle(WorkflowExecutionStatus.COMPLETED, session=won_session(), summary=summary)
    monkeypatch.setattr(server, 'temporal_client', FakeClient(handle))

    response = client.get('/api/replays/r-2')

    assert response.status_code == 200
    body = response.get_json()
    assert body['finished'] is True
    assert body['result'] == {
        'outcome': 'EXHAUSTED',
        'status': 'IN_PROGRESS',
        'steps': 3,
        'message': 'no more actions',
    }


@pytest.mark.parametrize("kind, status_code", [("CorruptDemo", 422), ("FileNotFoundError", 404)])
def test_failed_replay_reports_load_error(client, monkeypatch, kind, status_code):
    failure = WorkflowFailureError(cause=ApplicationError("cannot load demo", type=kind, non_retryable=True))
    handle = FakeReplayHandle(WorkflowExecutionStatus.FAILED, failure=failure)
    monkeypatch.setattr(server, 'temporal_client', FakeClient(handle))

    response = client.get('/api/replays/r-3')

    assert response.status_code == status_code
    assert response.get_json()['kind'] == kind


def test_failure_cause_walks_nested_errors():
    application_error = ApplicationError("bad bytes", type="CorruptDemo")
    wrapper = RuntimeError("activity failed")
    wrapper.__cause__ = application_error

    assert server.failure_cause(WorkflowFailureError(cause=wrapper)) is application_error
    assert server.failure_cause(WorkflowFailureError(cause=RuntimeError("terminated"))) is None
