"""Rich console output and markdown file save for debate results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from roundtable.models import AgentResponse, ConsensusResult, ContextRequest, DebateResult, RoundResult, RoundStatus

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_LEVEL_STYLES = {"high": "green", "medium": "yellow", "low": "red"}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: AgentResponse, words: int = 50) -> str:
    """Return the position plus the first N words of the reasoning."""
    all_words = response.reasoning.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return f"[bold]{response.position}[/bold]\n\n{preview}" if preview else f"[bold]{response.position}[/bold]"


def _consensus_line(consensus: ConsensusResult) -> str:
    style = _LEVEL_STYLES.get(consensus.level.value, "white")
    return f"[{style}]Agreement {consensus.agreement_level:.0%} ({consensus.level.value})[/{style}]"


def print_round_summary(round_result: RoundResult) -> None:
    """Print a brief summary of round responses and consensus to the console."""
    console.print(Rule(f"[bold cyan]Round {round_result.round_number} Summary[/bold cyan]"))
    for resp in round_result.responses:
        subtitle = f"confidence {resp.confidence:.0%}"
        if resp.stance:
            subtitle += f" | {resp.stance}"
        console.print(
            Panel(
                _response_preview(resp),
                title=f"[bold]{resp.agent_name}[/bold]",
                subtitle=subtitle,
                border_style="dim",
            )
        )

    consensus = round_result.consensus
    console.print(_consensus_line(consensus))
    for point in consensus.disagreement_points:
        console.print(f"  [dim]- {point}[/dim]")
    if consensus.groupthink_warning:
        console.print(
            f"[yellow]Groupthink warning:[/yellow] {'; '.join(consensus.groupthink_warning.indicators)}"
        )
    if round_result.status is RoundStatus.NEEDS_CONTEXT:
        console.print("[yellow]Round paused: participants need more context.[/yellow]")


def print_context_requests(requests: list[ContextRequest]) -> None:
    console.print(Rule("[bold yellow]Context Requested[/bold yellow]"))
    for req in requests:
        console.print(f"[bold]{req.agent_id}[/bold] ({req.priority.value}): {req.query}")
        if req.reason:
            console.print(f"  [dim]{req.reason}[/dim]")


def print_synthesis(result: DebateResult) -> None:
    """Print the full synthesis to the console using Rich markdown."""
    console.print(Rule("[bold green]Roundtable Synthesis[/bold green]"))
    synth_label = result.synthesizer
    if result.synthesizer_is_participant:
        synth_label += " (participant)"
    else:
        synth_label += " (non-participant)"
    console.print(
        Text(
            f"Synthesized by: {synth_label} | "
            f"Duration: {result.total_duration_sec:.1f}s | "
            f"Rounds: {len(result.rounds)} | "
            f"Mode: {result.session.mode} | "
            f"Exit: {result.session.exit_reason or 'n/a'}",
            style="dim",
        )
    )
    console.print(Markdown(result.synthesis))


def save_to_file(result: DebateResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full debate transcript as a markdown file.

    Args:
        result: The completed DebateResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    session = result.session

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(session.topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    synth_is_label = "participant" if result.synthesizer_is_participant else "non-participant"
    final_agreement = f"{session.consensus.agreement_level:.0%}" if session.consensus else "n/a"

    lines: list[str] = [
        f"# Roundtable Debate: {session.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {session.mode}",
        f"**Panel:** {', '.join(session.agent_ids)}",
        f"**Synthesizer:** {result.synthesizer} ({synth_is_label})",
        f"**Rounds:** {len(result.rounds)} of {session.total_rounds}",
        f"**Exit:** {session.exit_reason or session.status.value}",
        f"**Final agreement:** {final_agreement}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        "",
        "---",
        "",
    ]

    for rnd in result.rounds:
        lines.append(f"## Round {rnd.round_number}")
        lines.append("")
        for resp in rnd.responses:
            lines.append(f"### {resp.agent_name}")
            lines.append("")
            lines.append(f"**Position:** {resp.position}")
            lines.append("")
            lines.append(resp.reasoning)
            lines.append("")
            lines.append(
                f"*Confidence: {resp.confidence:.0%}"
                + (f" | Stance: {resp.stance}" if resp.stance else "")
                + "*"
            )
            lines.append("")

        consensus = rnd.consensus
        lines.append(f"**Consensus:** {consensus.agreement_level:.0%} ({consensus.level.value}). {consensus.summary}")
        lines.append("")
        for point in consensus.common_points:
            lines.append(f"- Agreement: {point}")
        for point in consensus.disagreement_points:
            lines.append(f"- Disagreement: {point}")
        lines.append("")

    lines += [
        f"## Synthesis (by {result.synthesizer}, {synth_is_label})",
        "",
        result.synthesis,
        "",
    ]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
