import pytest

from sweeper.types import Action, ActionLog, ActionType


def test_new_log_holds_only_the_sentinel():
    log = ActionLog()

    assert len(log) == 0
    assert log.entries == [Action(ActionType.NONE, 0.0, 0, 0)]
    assert list(log.iterate()) == []


def test_iterate_yields_actions_in_recorded_order():
    log = ActionLog()
    actions = [
        Action(ActionType.MOVE_RIGHT, 0.25, 1, 0),
        Action(ActionType.FLAG, 1.5, 1, 0),
        Action(ActionType.REVEAL, 0.0, 2, 2),
    ]
    for action in actions:
        log.append(action)

    assert len(log) == 3
    assert list(log.iterate()) == actions


def test_iterate_is_restartable():
    log = ActionLog()
    log.append(Action(ActionType.REVEAL, 0.1, 0, 0))
    log.append(Action(ActionType.QUIT, 0.2, 0, 0))

    first = log.iterate()
    assert next(first).type == ActionType.REVEAL

    assert [a.type for a in log] == [ActionType.REVEAL, ActionType.QUIT]
    assert [a.type for a in log.iterate()] == [ActionType.REVEAL, ActionType.QUIT]


def test_negative_delay_is_rejected():
    log = ActionLog()

    with pytest.raises(ValueError):
        log.append(Action(ActionType.REVEAL, -0.5, 0, 0))
    assert len(log) == 0
