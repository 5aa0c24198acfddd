"""Tests for roundtable/synthesis.py."""

import time
from unittest.mock import AsyncMock

import pytest

from roundtable.errors import TransientWorkerError
from roundtable.models import ConsensusResult, DebateResult, RoundResult
from roundtable.synthesis import _format_full_transcript, synthesize
from tests.conftest import MockWorker, make_response


def test_format_full_transcript():
    rounds = [
        RoundResult(
            round_number=1,
            responses=[make_response("gemini", "Use YAML."), make_response("claude", "Use JSON.")],
            consensus=ConsensusResult(agreement_level=0.2),
        ),
        RoundResult(
            round_number=2,
            responses=[make_response("gemini", "Changed mind: JSON.", round_number=2)],
            consensus=ConsensusResult(agreement_level=1.0),
        ),
    ]
    transcript = _format_full_transcript(rounds)
    assert "### Round 1 (agreement 20%)" in transcript
    assert "### Round 2 (agreement 100%)" in transcript
    assert "Use YAML." in transcript
    assert "Changed mind: JSON." in transcript


async def test_synthesize_returns_debate_result(sample_session, sample_round, sample_prompts_config):
    sample_session.consensus = sample_round.consensus
    synthesizer = MockWorker("openai")
    synthesizer.generate_raw_completion = AsyncMock(return_value="  ## Recommendation\nUse YAML.  ")

    result = await synthesize(
        session=sample_session,
        rounds=[sample_round],
        synthesizer=synthesizer,
        prompts=sample_prompts_config,
        debate_start_time=time.monotonic(),
    )

    assert isinstance(result, DebateResult)
    assert result.synthesis == "## Recommendation\nUse YAML."
    assert result.synthesizer == "openai"
    assert result.synthesizer_is_participant is False
    assert result.rounds == [sample_round]
    assert result.total_duration_sec >= 0


async def test_synthesize_prompt_is_filled(sample_session, sample_round, sample_prompts_config):
    sample_session.consensus = sample_round.consensus
    synthesizer = MockWorker("openai")
    synthesizer.generate_raw_completion = AsyncMock(return_value="Done.")

    await synthesize(sample_session, [sample_round], synthesizer, sample_prompts_config, time.monotonic(), True)

    prompt = synthesizer.generate_raw_completion.call_args.args[0]
    assert sample_session.topic in prompt
    assert "(collaborative)" in prompt
    assert "Agreement: 35%" in prompt
    assert "1 rounds" in prompt
    assert "Use JSON, tooling is everywhere" in prompt


async def test_synthesize_without_consensus(sample_session, sample_round, sample_prompts_config):
    synthesizer = MockWorker("openai")
    synthesizer.generate_raw_completion = AsyncMock(return_value="Done.")
    await synthesize(sample_session, [sample_round], synthesizer, sample_prompts_config, time.monotonic())
    assert "Agreement: n/a" in synthesizer.generate_raw_completion.call_args.args[0]


async def test_synthesize_empty_content_raises(sample_session, sample_round, sample_prompts_config):
    synthesizer = MockWorker("openai")
    synthesizer.generate_raw_completion = AsyncMock(return_value="   ")
    with pytest.raises(RuntimeError, match="empty content"):
        await synthesize(sample_session, [sample_round], synthesizer, sample_prompts_config, time.monotonic())


async def test_synthesize_propagates_worker_error(sample_session, sample_round, sample_prompts_config):
    synthesizer = MockWorker("openai")
    synthesizer.generate_raw_completion = AsyncMock(side_effect=TransientWorkerError("timeout", provider="openai"))
    with pytest.raises(TransientWorkerError):
        await synthesize(sample_session, [sample_round], synthesizer, sample_prompts_config, time.monotonic())
