"""Session status transitions and round counter.

active <-> paused, active -> completed, active -> error. Completed and error
are terminal. A rejected transition raises InvalidStateTransition and leaves
the session exactly as it was.
"""

import logging
from datetime import datetime

from roundtable.errors import InvalidStateTransition
from roundtable.models import Session, SessionStatus

logger = logging.getLogger(__name__)

_ALLOWED: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.ACTIVE: {SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.ERROR},
    SessionStatus.PAUSED: {SessionStatus.ACTIVE, SessionStatus.COMPLETED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.ERROR: set(),
}


class SessionStateMachine:
    """The only place that mutates a session's status and current_round."""

    def transition(self, session: Session, target: SessionStatus) -> None:
        if target not in _ALLOWED[session.status]:
            raise InvalidStateTransition(
                f"Cannot move session {session.id} from {session.status.value} to {target.value}",
                current=session.status.value,
                requested=target.value,
            )
        logger.debug("Session %s: %s -> %s", session.id, session.status.value, target.value)
        session.status = target
        session.updated_at = datetime.now()

    def pause(self, session: Session) -> None:
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidStateTransition(
                f"Only an active session can be paused (session is {session.status.value})",
                current=session.status.value,
                requested=SessionStatus.PAUSED.value,
            )
        self.transition(session, SessionStatus.PAUSED)

    def resume(self, session: Session) -> None:
        if session.status is not SessionStatus.PAUSED:
            raise InvalidStateTransition(
                f"Only a paused session can be resumed (session is {session.status.value})",
                current=session.status.value,
                requested=SessionStatus.ACTIVE.value,
            )
        self.transition(session, SessionStatus.ACTIVE)

    def stop(self, session: Session, reason: str = "stopped") -> None:
        """Operator stop: active or paused session ends as completed."""
        self.transition(session, SessionStatus.COMPLETED)
        session.exit_reason = reason

    def complete(self, session: Session, reason: str) -> None:
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidStateTransition(
                f"Only an active session can complete (session is {session.status.value})",
                current=session.status.value,
                requested=SessionStatus.COMPLETED.value,
            )
        self.transition(session, SessionStatus.COMPLETED)
        session.exit_reason = reason
        logger.info("Session %s completed after round %d (%s)", session.id, session.current_round, reason)

    def fail(self, session: Session, reason: str) -> None:
        self.transition(session, SessionStatus.ERROR)
        session.exit_reason = reason
        logger.error("Session %s moved to error in round %d: %s", session.id, session.current_round + 1, reason)

    def advance_round(self, session: Session) -> None:
        """Count one fully collected and stored round."""
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidStateTransition(
                f"Cannot advance a {session.status.value} session",
                current=session.status.value,
                requested="advance",
            )
        if session.current_round >= session.total_rounds:
            raise InvalidStateTransition(
                f"Session {session.id} already ran all {session.total_rounds} rounds",
                current=session.status.value,
                requested="advance",
            )
        session.current_round += 1
        session.updated_at = datetime.now()
