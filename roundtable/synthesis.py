"""Final synthesis: build transcript, call synthesizer, return DebateResult."""

import logging
import time

from config.config_loader import PromptsConfig
from roundtable.models import DebateResult, RoundResult, Session
from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)


def _format_full_transcript(rounds: list[RoundResult]) -> str:
    """Format all rounds into a single transcript string for synthesis."""
    parts: list[str] = []
    for rnd in rounds:
        parts.append(f"### Round {rnd.round_number} (agreement {rnd.consensus.agreement_level:.0%})")
        for resp in rnd.responses:
            parts.append(
                f"**{resp.agent_name}** (confidence {resp.confidence:.0%})\n"
                f"Position: {resp.position}\n\n{resp.reasoning}"
            )
        parts.append("")  # blank line between rounds
    return "\n\n".join(parts)


async def synthesize(
    session: Session,
    rounds: list[RoundResult],
    synthesizer: Worker,
    prompts: PromptsConfig,
    debate_start_time: float,
    synthesizer_is_participant: bool = False,
) -> DebateResult:
    """Run synthesis and return the final DebateResult.

    Args:
        session: The finished (or stopped) session.
        rounds: Completed rounds, in order.
        synthesizer: The worker that will synthesize the debate.
        prompts: Prompt templates from config.
        debate_start_time: monotonic time when the debate started (for duration).
        synthesizer_is_participant: True if synthesizer was also in the debate panel.

    Raises:
        RoundtableError: If the synthesizer call fails.
        RuntimeError: If synthesizer returns empty content.
    """
    transcript = _format_full_transcript(rounds)
    agreement = f"{session.consensus.agreement_level:.0%}" if session.consensus else "n/a"
    synthesis_prompt = prompts.synthesis.format(
        rounds=len(rounds),
        mode=session.mode,
        topic=session.topic,
        agreement=agreement,
        full_transcript=transcript,
    )

    logger.info("Running synthesis via %s", synthesizer.name())

    content = await synthesizer.generate_raw_completion(synthesis_prompt)

    if not content or not content.strip():
        raise RuntimeError(f"Synthesizer {synthesizer.name()} returned empty content")

    total_duration = time.monotonic() - debate_start_time

    return DebateResult(
        session=session,
        rounds=rounds,
        synthesis=content.strip(),
        synthesizer=synthesizer.name(),
        total_duration_sec=total_duration,
        synthesizer_is_participant=synthesizer_is_participant,
    )
