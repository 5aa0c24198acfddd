"""Abstract base for debate workers, plus the shared prompt-and-parse flow."""

import logging
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig
from roundtable.errors import FatalWorkerError, RateLimitError, RoundtableError, TransientWorkerError
from roundtable.models import AgentResponse, RoundContext, ToolCallRecord
from roundtable.toolkit import Toolkit
from roundtable.workers.prompts import SYSTEM_PROMPT, build_prompt, parse_reply

logger = logging.getLogger(__name__)


def error_from_status(provider_name: str, status: int | None, message: str) -> RoundtableError:
    """Map an HTTP status from a provider SDK onto the error taxonomy."""
    if status == 429:
        return RateLimitError(message, provider=provider_name)
    if status is None or status >= 500:
        return TransientWorkerError(message, provider=provider_name)
    return FatalWorkerError(message, provider=provider_name)


class Worker(ABC):
    """A remote debate participant bound to one provider."""

    @abstractmethod
    def agent_id(self) -> str:
        """Stable identifier, unique within a session."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Display name (e.g. 'claude')."""
        ...

    @abstractmethod
    def provider(self) -> str:
        """Provider tag used for rate limiting (e.g. 'anthropic')."""
        ...

    @abstractmethod
    async def generate_response(self, context: RoundContext, toolkit: Toolkit | None = None) -> AgentResponse:
        """Produce this worker's response for one round.

        Raises:
            RateLimitError, TransientWorkerError: Worth retrying.
            FatalWorkerError: Not worth retrying.
        """
        ...

    @abstractmethod
    async def generate_raw_completion(self, prompt: str, system_prompt: str | None = None) -> str:
        """Plain completion, used for consensus analysis, health checks and synthesis."""
        ...


class PromptedWorker(Worker):
    """Worker that answers rounds by prompting a chat model for JSON.

    Subclasses only implement generate_raw_completion for their SDK.
    """

    provider_tag = "unknown"

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def agent_id(self) -> str:
        return self._config.name

    def name(self) -> str:
        return self._config.name

    def provider(self) -> str:
        return self.provider_tag

    async def generate_response(self, context: RoundContext, toolkit: Toolkit | None = None) -> AgentResponse:
        prompt = build_prompt(context)
        raw = await self.generate_raw_completion(prompt, SYSTEM_PROMPT.format(name=self.name()))
        reply = parse_reply(raw)
        if not reply["position"]:
            raise TransientWorkerError("Reply had no position", provider=self.name())

        tool_calls: list[ToolCallRecord] = []
        for item in reply["context_requests"]:
            if toolkit is None:
                logger.debug("%s asked for context but no toolkit is attached", self.name())
                break
            request = toolkit.request_context(self.agent_id(), item["query"], item["reason"], item["priority"])
            tool_calls.append(
                ToolCallRecord(tool_name="request_context", input=item, output={"request_id": request.id})
            )

        return AgentResponse(
            agent_id=self.agent_id(),
            agent_name=self.name(),
            position=reply["position"],
            reasoning=reply["reasoning"],
            confidence=reply["confidence"],
            stance=reply["stance"],
            tool_calls=tuple(tool_calls),
            round_number=context.current_round,
        )
