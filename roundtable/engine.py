"""Round orchestration: topology, consensus, exit criteria and session bookkeeping."""

import logging
from collections.abc import Callable

from roundtable.consensus import ConsensusEvaluator
from roundtable.errors import InvalidStateTransition, RoundFailedError
from roundtable.exit_criteria import ExitCriteriaTracker
from roundtable.invoker import WorkerInvoker
from roundtable.modes import Parallelization, get_mode, resolve_topology
from roundtable.models import (
    AgentResponse,
    ContextResult,
    RoundContext,
    RoundResult,
    RoundStatus,
    Session,
    SessionStatus,
)
from roundtable.session import SessionStateMachine
from roundtable.store import SessionStore
from roundtable.toolkit import DebateToolkit, Toolkit
from roundtable.topology import TOPOLOGIES, ExecutionTopology
from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)


class DebateEngine:
    """Drives rounds for a session.

    A round either completes in full (stored, counter advanced) or leaves the
    session's round state untouched: a participant failure moves the session
    to error, and an outstanding required context request pauses progress
    until the caller supplies the answers.
    """

    def __init__(
        self,
        invoker: WorkerInvoker,
        store: SessionStore,
        evaluator: ConsensusEvaluator | None = None,
        exit_tracker: ExitCriteriaTracker | None = None,
        state_machine: SessionStateMachine | None = None,
        parallelization: Parallelization | str = Parallelization.NONE,
        toolkit_factory: Callable[[], Toolkit] = DebateToolkit,
    ) -> None:
        self.invoker = invoker
        self.store = store
        self.evaluator = evaluator or ConsensusEvaluator()
        self.exit_tracker = exit_tracker or ExitCriteriaTracker()
        self.state_machine = state_machine or SessionStateMachine()
        self.parallelization = Parallelization(parallelization)
        self._toolkit_factory = toolkit_factory
        self._topologies: dict[str, ExecutionTopology] = {}

    def topology_for(self, mode: str) -> ExecutionTopology:
        name = resolve_topology(mode, self.parallelization)
        if name not in self._topologies:
            self._topologies[name] = TOPOLOGIES[name](self.invoker)
        return self._topologies[name]

    async def execute_round(
        self,
        participants: list[Worker],
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> list[AgentResponse]:
        """Run one round for *context* without touching any session state.

        Raises:
            RoundFailedError: If any participant fails for good.
        """
        topology = self.topology_for(context.mode)
        logger.info(
            "Starting round %d (%s, %s topology) with %d participants",
            context.current_round,
            context.mode,
            topology.name,
            len(participants),
        )
        return await topology.execute_round(participants, context, toolkit)

    async def execute_rounds(
        self,
        participants: list[Worker],
        session: Session,
        num_rounds: int,
        focus_question: str | None = None,
        context_results: list[ContextResult] | None = None,
        on_round_complete: Callable[[RoundResult], None] | None = None,
    ) -> list[RoundResult]:
        """Run up to *num_rounds* rounds, stopping early on convergence or a context request.

        Args:
            participants: Workers in speaking order.
            session: Must be active.
            num_rounds: Upper bound for this call; never runs past total_rounds.
            focus_question: Optional question placed in every round's context.
            context_results: Answers to the session's pending context requests.
                Required when the previous call ended with needs_context.
            on_round_complete: Optional callback invoked after each round.

        Returns:
            One RoundResult per executed round. The last one has status
            needs_context when a participant asked for required information.

        Raises:
            InvalidStateTransition: Session not active, or pending required
                requests without matching results. Session is unchanged.
            RoundFailedError: A participant failed for good. Session moves to
                error and the round is not stored.
        """
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidStateTransition(
                f"Session {session.id} is {session.status.value}, rounds need an active session",
                current=session.status.value,
                requested="execute_rounds",
            )
        if num_rounds < 1:
            raise ValueError("num_rounds must be at least 1")
        if not participants:
            raise ValueError("at least one participant is required")

        supplied = list(context_results or [])
        self._check_context_results(session, supplied)

        mode = get_mode(session.mode)
        results: list[RoundResult] = []
        rounds_to_run = min(num_rounds, session.total_rounds - session.current_round)

        for _ in range(rounds_to_run):
            round_number = session.current_round + 1
            context = RoundContext(
                session_id=session.id,
                topic=session.topic,
                mode=session.mode,
                current_round=round_number,
                total_rounds=session.total_rounds,
                previous_responses=list(session.responses),
                focus_question=focus_question,
                mode_instruction=mode.instruction,
                context_results=supplied,
            )
            toolkit = self._toolkit_factory()

            try:
                responses = await self.execute_round(participants, context, toolkit)
            except RoundFailedError as exc:
                self.state_machine.fail(session, str(exc))
                await self.store.update_session(session)
                raise

            requests = toolkit.drain_context_requests()
            consensus = await self.evaluator.evaluate(responses, session.topic)
            round_result = RoundResult(
                round_number=round_number,
                responses=responses,
                consensus=consensus,
                context_requests=requests,
            )
            # Answers are consumed by the first round they were supplied to
            supplied = []

            if round_result.required_requests:
                round_result.status = RoundStatus.NEEDS_CONTEXT
                session.pending_context_requests = round_result.required_requests
                await self.store.update_session(session)
                logger.info(
                    "Round %d needs context: %d required request(s), session %s waits",
                    round_number,
                    len(round_result.required_requests),
                    session.id,
                )
                results.append(round_result)
                if on_round_complete:
                    on_round_complete(round_result)
                break

            await self.store.append_round(session.id, round_result)
            self.state_machine.advance_round(session)
            session.pending_context_requests = []
            session.responses.extend(responses)
            session.consensus = consensus
            results.append(round_result)

            logger.info(
                "Round %d complete: %d responses, agreement %.2f (%s)",
                round_number,
                len(responses),
                consensus.agreement_level,
                consensus.level.value,
            )

            converged = self.exit_tracker.record_round(session, consensus)
            if converged:
                self.state_machine.complete(session, "consensus")
            elif session.current_round >= session.total_rounds:
                self.state_machine.complete(session, "max_rounds")
            await self.store.update_session(session)

            if on_round_complete:
                on_round_complete(round_result)
            if session.status is not SessionStatus.ACTIVE:
                break

        return results

    def _check_context_results(self, session: Session, supplied: list[ContextResult]) -> None:
        pending = [r for r in session.pending_context_requests if r.required]
        if not pending:
            return
        answered = {result.request_id for result in supplied}
        missing = [r for r in pending if r.id not in answered]
        if missing:
            raise InvalidStateTransition(
                f"Session {session.id} is waiting for context: "
                + ", ".join(f"{r.id} ({r.query})" for r in missing),
                current=session.status.value,
                requested="execute_rounds",
            )
