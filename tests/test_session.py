"""Tests for roundtable/session.py."""

import pytest

from roundtable.errors import ErrorKind, InvalidStateTransition
from roundtable.models import SessionStatus
from roundtable.session import SessionStateMachine


@pytest.fixture
def machine() -> SessionStateMachine:
    return SessionStateMachine()


def test_pause_resume_round_trip_keeps_round(machine, sample_session):
    sample_session.current_round = 2
    machine.pause(sample_session)
    assert sample_session.status is SessionStatus.PAUSED
    machine.resume(sample_session)
    assert sample_session.status is SessionStatus.ACTIVE
    assert sample_session.current_round == 2


def test_pause_completed_session_rejected(machine, sample_session):
    machine.complete(sample_session, "max_rounds")
    with pytest.raises(InvalidStateTransition) as exc_info:
        machine.pause(sample_session)
    assert sample_session.status is SessionStatus.COMPLETED
    assert exc_info.value.kind is ErrorKind.INVALID_TRANSITION
    assert exc_info.value.current == "completed"


def test_pause_paused_session_rejected(machine, sample_session):
    machine.pause(sample_session)
    with pytest.raises(InvalidStateTransition):
        machine.pause(sample_session)
    assert sample_session.status is SessionStatus.PAUSED


def test_resume_active_session_rejected(machine, sample_session):
    with pytest.raises(InvalidStateTransition):
        machine.resume(sample_session)
    assert sample_session.status is SessionStatus.ACTIVE


def test_error_is_terminal(machine, sample_session):
    machine.fail(sample_session, "round 1 failed")
    assert sample_session.status is SessionStatus.ERROR
    for target in SessionStatus:
        with pytest.raises(InvalidStateTransition):
            machine.transition(sample_session, target)
    assert sample_session.status is SessionStatus.ERROR


def test_stop_from_paused(machine, sample_session):
    machine.pause(sample_session)
    machine.stop(sample_session)
    assert sample_session.status is SessionStatus.COMPLETED
    assert sample_session.exit_reason == "stopped"


def test_paused_session_cannot_fail(machine, sample_session):
    machine.pause(sample_session)
    with pytest.raises(InvalidStateTransition):
        machine.fail(sample_session, "boom")
    assert sample_session.status is SessionStatus.PAUSED
    assert sample_session.exit_reason is None


def test_advance_round_stops_at_total(machine, sample_session):
    for _ in range(sample_session.total_rounds):
        machine.advance_round(sample_session)
    assert sample_session.current_round == sample_session.total_rounds
    with pytest.raises(InvalidStateTransition):
        machine.advance_round(sample_session)
    assert sample_session.current_round == sample_session.total_rounds


def test_advance_round_requires_active(machine, sample_session):
    machine.pause(sample_session)
    with pytest.raises(InvalidStateTransition):
        machine.advance_round(sample_session)
    assert sample_session.current_round == 0
