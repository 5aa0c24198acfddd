"""Early-termination check: sustained agreement across consecutive rounds."""

import logging
from dataclasses import dataclass

from roundtable.models import ConsensusResult, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitCriteriaConfig:
    enabled: bool = True
    consensus_threshold: float = 0.9
    convergence_rounds: int = 2

    def __post_init__(self) -> None:
        if not 0.0 <= self.consensus_threshold <= 1.0:
            raise ValueError("consensus_threshold must be within [0, 1]")
        if self.convergence_rounds < 1:
            raise ValueError("convergence_rounds must be at least 1")


class ExitCriteriaTracker:
    """Keeps the session's consecutive-consensus counter and reports eligibility.

    The counter lives on the Session so it carries over between separate
    execute_rounds calls.
    """

    def __init__(self, config: ExitCriteriaConfig | None = None) -> None:
        self.config = config or ExitCriteriaConfig()

    def record_round(self, session: Session, consensus: ConsensusResult) -> bool:
        """Update the counter for one completed round. Returns True once early exit is allowed."""
        if not self.config.enabled:
            return False

        if consensus.agreement_level >= self.config.consensus_threshold:
            session.consecutive_consensus_rounds += 1
        else:
            session.consecutive_consensus_rounds = 0

        eligible = session.consecutive_consensus_rounds >= self.config.convergence_rounds
        logger.debug(
            "Session %s: agreement %.2f, %d/%d consecutive qualifying rounds",
            session.id,
            consensus.agreement_level,
            session.consecutive_consensus_rounds,
            self.config.convergence_rounds,
        )
        if eligible:
            logger.info(
                "Session %s converged: %d consecutive rounds at or above %.2f",
                session.id,
                session.consecutive_consensus_rounds,
                self.config.consensus_threshold,
            )
        return eligible
