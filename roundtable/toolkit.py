"""Toolkit handed to workers during a round.

The engine treats a toolkit as opaque except for the context requests it
collects, which drive the needs-more-context handshake.
"""

import logging
from abc import ABC, abstractmethod

from roundtable.models import ContextPriority, ContextRequest

logger = logging.getLogger(__name__)


class Toolkit(ABC):
    """Capabilities a worker may use while producing its response."""

    @abstractmethod
    def request_context(
        self,
        agent_id: str,
        query: str,
        reason: str,
        priority: ContextPriority | str = ContextPriority.OPTIONAL,
    ) -> ContextRequest:
        """Record that *agent_id* needs outside information."""
        ...

    @abstractmethod
    def drain_context_requests(self) -> list[ContextRequest]:
        """Return and forget every request recorded since the last drain."""
        ...


class DebateToolkit(Toolkit):
    """Default toolkit: collects context requests in arrival order."""

    def __init__(self) -> None:
        self._requests: list[ContextRequest] = []

    def request_context(
        self,
        agent_id: str,
        query: str,
        reason: str,
        priority: ContextPriority | str = ContextPriority.OPTIONAL,
    ) -> ContextRequest:
        request = ContextRequest(
            agent_id=agent_id,
            query=query,
            reason=reason,
            priority=ContextPriority(priority),
        )
        self._requests.append(request)
        logger.info("Agent %s requested %s context: %s", agent_id, request.priority.value, query)
        return request

    def drain_context_requests(self) -> list[ContextRequest]:
        requests, self._requests = self._requests, []
        return requests
