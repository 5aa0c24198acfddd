"""Session storage interface plus the in-memory implementation the CLI uses."""

import copy
import logging
from abc import ABC, abstractmethod

from roundtable.models import AgentResponse, RoundResult, Session

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    pass


class SessionStore(ABC):
    @abstractmethod
    async def create_session(self, session: Session) -> Session:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session:
        """Raises SessionNotFoundError for unknown ids."""
        ...

    @abstractmethod
    async def update_session(self, session: Session) -> None:
        ...

    @abstractmethod
    async def append_round(self, session_id: str, round_result: RoundResult) -> None:
        """Persist one completed round. Must succeed before the round counter advances."""
        ...

    @abstractmethod
    async def get_responses(self, session_id: str, round_number: int | None = None) -> list[AgentResponse]:
        ...


class InMemorySessionStore(SessionStore):
    """Keeps sessions and rounds in dicts for the lifetime of the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._rounds: dict[str, list[RoundResult]] = {}

    async def create_session(self, session: Session) -> Session:
        self._sessions[session.id] = session
        self._rounds[session.id] = []
        logger.debug("Created session %s (%s, %d rounds)", session.id, session.mode, session.total_rounds)
        return session

    async def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    async def update_session(self, session: Session) -> None:
        if session.id not in self._sessions:
            raise SessionNotFoundError(session.id)
        self._sessions[session.id] = session

    async def append_round(self, session_id: str, round_result: RoundResult) -> None:
        if session_id not in self._rounds:
            raise SessionNotFoundError(session_id)
        self._rounds[session_id].append(copy.copy(round_result))

    async def get_responses(self, session_id: str, round_number: int | None = None) -> list[AgentResponse]:
        if session_id not in self._rounds:
            raise SessionNotFoundError(session_id)
        return [
            response
            for rnd in self._rounds[session_id]
            if round_number is None or rnd.round_number == round_number
            for response in rnd.responses
        ]

    def get_rounds(self, session_id: str) -> list[RoundResult]:
        return list(self._rounds.get(session_id, []))
