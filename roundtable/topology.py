"""Execution topologies: who runs when within one round, and what each participant sees."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace

from roundtable.errors import RoundFailedError, RoundtableError
from roundtable.invoker import WorkerInvoker
from roundtable.models import AgentResponse, RoundContext
from roundtable.toolkit import Toolkit
from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)


def _check(result: AgentResponse | RoundtableError, worker: Worker, context: RoundContext) -> AgentResponse:
    if isinstance(result, RoundtableError):
        raise RoundFailedError(context.current_round, worker.agent_id(), result) from result
    return result


class ExecutionTopology(ABC):
    """Runs one round for an ordered list of participants.

    Output order always equals input participant order. Any participant
    failure aborts the round with RoundFailedError.
    """

    name = "base"

    def __init__(self, invoker: WorkerInvoker) -> None:
        self.invoker = invoker

    @abstractmethod
    async def execute_round(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> list[AgentResponse]:
        ...

    async def _run_parallel(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None,
    ) -> list[AgentResponse]:
        results = await asyncio.gather(
            *(self.invoker.invoke(worker, context, toolkit) for worker in participants)
        )
        return [_check(result, worker, context) for worker, result in zip(participants, results)]

    async def _run_sequential(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None,
        seen: list[AgentResponse] | None = None,
    ) -> list[AgentResponse]:
        responses: list[AgentResponse] = []
        visible = list(seen or [])
        for worker in participants:
            turn_context = replace(context, previous_responses=context.previous_responses + visible)
            response = _check(await self.invoker.invoke(worker, turn_context, toolkit), worker, context)
            responses.append(response)
            visible.append(response)
        return responses


class ParallelTopology(ExecutionTopology):
    """Everyone at once, each seeing only earlier rounds."""

    name = "parallel"

    async def execute_round(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> list[AgentResponse]:
        logger.debug("Parallel round %d with %d participants", context.current_round, len(participants))
        return await self._run_parallel(participants, context, toolkit)


class SequentialTopology(ExecutionTopology):
    """One at a time in order; participant k sees participants 1..k-1 of this round."""

    name = "sequential"

    async def execute_round(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> list[AgentResponse]:
        logger.debug("Sequential round %d with %d participants", context.current_round, len(participants))
        return await self._run_sequential(participants, context, toolkit)


class HybridTopology(ExecutionTopology):
    """All but the last participant in parallel, then the last one sees their answers."""

    name = "hybrid"

    async def execute_round(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> list[AgentResponse]:
        if len(participants) < 2:
            return await self._run_sequential(participants, context, toolkit)

        logger.debug("Hybrid round %d with %d participants", context.current_round, len(participants))
        *first, last = participants
        parallel_responses = await self._run_parallel(first, context, toolkit)
        closing = await self._run_sequential([last], context, toolkit, seen=parallel_responses)
        return parallel_responses + closing


TOPOLOGIES: dict[str, type[ExecutionTopology]] = {
    "parallel": ParallelTopology,
    "sequential": SequentialTopology,
    "hybrid": HybridTopology,
}
