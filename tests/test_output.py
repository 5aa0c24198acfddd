"""Tests for roundtable/output.py."""

from pathlib import Path

import pytest

from roundtable.models import ConsensusResult, DebateResult, SessionStatus
from roundtable.output import _slug, print_round_summary, print_synthesis, save_to_file


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def sample_debate_result(sample_session, sample_round) -> DebateResult:
    sample_session.current_round = 1
    sample_session.consensus = sample_round.consensus
    sample_session.status = SessionStatus.COMPLETED
    sample_session.exit_reason = "max_rounds"
    return DebateResult(
        session=sample_session,
        rounds=[sample_round],
        synthesis="## Recommendation\nUse YAML with a schema.",
        synthesizer="openai",
        total_duration_sec=10.5,
        synthesizer_is_participant=False,
    )


def test_save_to_file_creates_file(tmp_path: Path, sample_debate_result: DebateResult):
    saved = save_to_file(sample_debate_result, tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_debate_result: DebateResult):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_debate_result, output_dir)
    assert output_dir.exists()


def test_save_to_file_content(tmp_path: Path, sample_debate_result: DebateResult):
    content = save_to_file(sample_debate_result, tmp_path).read_text(encoding="utf-8")
    assert "Roundtable Debate" in content
    assert "**Mode:** collaborative" in content
    assert "## Round 1" in content
    assert "### claude" in content
    assert "**Consensus:** 35% (low)" in content
    assert "- Disagreement: claude vs gemini on format" in content
    assert "**Exit:** max_rounds" in content
    assert "## Synthesis (by openai, non-participant)" in content
    assert "Use YAML with a schema." in content


def test_save_to_file_slug_override(tmp_path: Path, sample_debate_result: DebateResult):
    saved = save_to_file(sample_debate_result, tmp_path, slug_override="custom")
    assert saved.stem.endswith("_custom")


def test_save_to_file_without_consensus(tmp_path: Path, sample_debate_result: DebateResult):
    sample_debate_result.session.consensus = None
    content = save_to_file(sample_debate_result, tmp_path).read_text(encoding="utf-8")
    assert "**Final agreement:** n/a" in content


def test_console_output_smoke(sample_debate_result: DebateResult, sample_round):
    sample_round.consensus = ConsensusResult(agreement_level=0.9, summary="High consensus.")
    print_round_summary(sample_round)
    print_synthesis(sample_debate_result)
