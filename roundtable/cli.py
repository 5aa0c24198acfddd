"""Click CLI: config loading, worker selection, debate rounds, and output."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from roundtable.consensus import ConsensusEvaluator, DelegateConsensusStrategy, LexicalConsensusStrategy
from roundtable.engine import DebateEngine
from roundtable.errors import ConfigurationError, RoundtableError
from roundtable.exit_criteria import ExitCriteriaTracker
from roundtable.healthcheck import run_health_checks
from roundtable.invoker import WorkerInvoker
from roundtable.models import ContextRequest, ContextResult, RoundResult, RoundStatus, Session, SessionStatus
from roundtable.modes import MODES, Parallelization
from roundtable.output import print_context_requests, print_round_summary, print_synthesis, save_to_file
from roundtable.rate_limit import RateLimiter
from roundtable.store import InMemorySessionStore
from roundtable.synthesis import synthesize
from roundtable.workers.anthropic import AnthropicWorker
from roundtable.workers.base import PromptedWorker, Worker
from roundtable.workers.gemini import GeminiWorker
from roundtable.workers.openai_worker import OpenAIWorker
from roundtable.workers.xai import XAIWorker

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

WORKER_CLASSES: dict[str, type[PromptedWorker]] = {
    "claude": AnthropicWorker,
    "openai": OpenAIWorker,
    "gemini": GeminiWorker,
    "grok": XAIWorker,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_workers(config: AppConfig) -> dict[str, Worker]:
    """Build all available workers. Returns dict keyed by name."""
    workers: dict[str, Worker] = {}
    for name in sorted(config.available_providers):
        if name not in WORKER_CLASSES:
            logger.warning("Worker '%s' unknown, skipping", name)
            continue
        try:
            workers[name] = WORKER_CLASSES[name](config.models[name])
        except RoundtableError as exc:
            logger.warning("Failed to instantiate worker '%s': %s", name, exc)
    return workers


def _determine_panel(config: AppConfig, models_arg: str | None) -> list[str]:
    """--models overrides the configured default panel."""
    if models_arg:
        return [m.strip() for m in models_arg.split(",") if m.strip()]
    return list(config.defaults.default_panel)


def _exclude_synthesizer_from_panel(
    panel_names: list[str],
    synthesizer_name: str,
    all_workers: dict[str, Worker],
) -> list[str]:
    """Remove synthesizer from panel when doing so still leaves >= 2 available debaters."""
    if synthesizer_name not in panel_names:
        return panel_names
    remaining = [n for n in panel_names if n != synthesizer_name]
    if len([n for n in remaining if n in all_workers]) >= 2:
        return remaining
    return panel_names


def _pick_non_participant_synthesizer(
    all_workers: dict[str, Worker],
    panel_names: list[str],
    preferred: str,
) -> tuple[Worker, bool]:
    """Pick synthesizer not in panel. Returns (worker, is_participant).

    is_participant=True only when no non-participant is available.
    """
    not_in_panel = [n for n in all_workers if n not in panel_names]
    if not_in_panel:
        if preferred in not_in_panel:
            return all_workers[preferred], False
        return all_workers[not_in_panel[0]], False
    if preferred in all_workers:
        return all_workers[preferred], True
    return next(iter(all_workers.values())), True


def _check_and_filter_workers(all_workers: dict[str, Worker]) -> dict[str, Worker]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working workers. Exits if the user declines
    to continue or no workers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_workers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_workers

    working = {n: w for n, w in all_workers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _build_evaluator(config: AppConfig, strategy: str, all_workers: dict[str, Worker]) -> ConsensusEvaluator:
    lexical = LexicalConsensusStrategy()
    chosen = lexical
    if strategy == "delegate":
        delegate_name = config.consensus.delegate
        if delegate_name in all_workers:
            chosen = DelegateConsensusStrategy(all_workers[delegate_name], fallback=lexical)
        else:
            logger.warning("Consensus delegate '%s' unavailable, using lexical analysis", delegate_name)
    return ConsensusEvaluator(
        chosen,
        high_threshold=config.consensus.high_threshold,
        medium_threshold=config.consensus.medium_threshold,
    )


def _build_engine(
    config: AppConfig,
    parallelization: str,
    strategy: str,
    all_workers: dict[str, Worker],
    store: InMemorySessionStore,
) -> DebateEngine:
    rate_limiter = RateLimiter(
        configs=config.rate_limits.providers,
        max_wait_sec=config.rate_limits.max_wait_sec,
    )
    return DebateEngine(
        invoker=WorkerInvoker(rate_limiter, config.retry),
        store=store,
        evaluator=_build_evaluator(config, strategy, all_workers),
        exit_tracker=ExitCriteriaTracker(config.exit_criteria),
        parallelization=parallelization,
    )


def _ask_for_context(requests: list[ContextRequest]) -> list[ContextResult]:
    """Prompt the operator for every required context request."""
    print_context_requests(requests)
    results: list[ContextResult] = []
    for req in requests:
        answer = click.prompt(f"Context for {req.agent_id} ({req.id})", default="", show_default=False).strip()
        if answer:
            results.append(ContextResult(request_id=req.id, success=True, result=answer))
        else:
            results.append(ContextResult(request_id=req.id, success=False, error="No answer provided"))
    return results


async def _run_session(
    topic: str,
    mode: str,
    config: AppConfig,
    all_workers: dict[str, Worker],
    rounds: int,
    models_arg: str | None,
    parallelization: str,
    strategy: str,
    output_dir: Path,
    synthesizer_name: str,
) -> Path:
    """Run a debate session end to end and return the saved output path."""
    panel_names = _determine_panel(config, models_arg)
    panel_names = _exclude_synthesizer_from_panel(panel_names, synthesizer_name, all_workers)
    panel = [all_workers[n] for n in panel_names if n in all_workers]

    if len(panel) < 2:
        console.print(
            f"[bold red]Error:[/bold red] Need at least 2 providers in panel, got {len(panel)}. "
            "Check API keys in .env or adjust --models."
        )
        sys.exit(1)

    synthesizer, is_participant = _pick_non_participant_synthesizer(all_workers, panel_names, synthesizer_name)

    store = InMemorySessionStore()
    engine = _build_engine(config, parallelization, strategy, all_workers, store)
    session = await store.create_session(
        Session(topic=topic, mode=mode, agent_ids=[w.agent_id() for w in panel], total_rounds=rounds)
    )

    synth_label = synthesizer.name() + (" (participant)" if is_participant else " (non-participant)")
    console.print(
        f"\n[bold cyan]AI Roundtable[/bold cyan] - {len(panel)} models, {rounds} rounds, "
        f"{mode} ({engine.topology_for(mode).name})"
    )
    console.print(f"Panel: {', '.join(w.name() for w in panel)}")
    console.print(f"Synthesizer: {synth_label}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    debate_start = time.monotonic()
    context_results: list[ContextResult] = []

    while session.status is SessionStatus.ACTIVE:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:

            def on_round_complete(rnd: RoundResult) -> None:
                progress.print(
                    f"[green]OK[/green] Round {rnd.round_number} {rnd.status.value} "
                    f"(agreement {rnd.consensus.agreement_level:.0%})"
                )

            progress.add_task("Running debate rounds...", total=None)
            results = await engine.execute_rounds(
                panel,
                session,
                num_rounds=session.total_rounds - session.current_round,
                context_results=context_results,
                on_round_complete=on_round_complete,
            )

        if not results or results[-1].status is not RoundStatus.NEEDS_CONTEXT:
            break
        print_round_summary(results[-1])
        context_results = _ask_for_context(session.pending_context_requests)

    completed_rounds = store.get_rounds(session.id)
    if not completed_rounds:
        raise RuntimeError("Debate ended without a completed round")

    for rnd in completed_rounds:
        print_round_summary(rnd)

    with console.status("Running synthesis..."):
        result = await synthesize(
            session=session,
            rounds=completed_rounds,
            synthesizer=synthesizer,
            prompts=config.prompts,
            debate_start_time=debate_start,
            synthesizer_is_participant=is_participant,
        )

    print_synthesis(result)

    saved_path = save_to_file(result, output_dir)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


@click.command()
@click.argument("topic")
@click.option("--mode", default=None, type=click.Choice(sorted(MODES)), help="Debate mode (default: from config)")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--models", default=None, help="Comma-separated model list, overrides the default panel")
@click.option(
    "--parallelization",
    default=None,
    type=click.Choice([p.value for p in Parallelization]),
    help="Override each mode's topology (default: from config)",
)
@click.option(
    "--consensus",
    "consensus_strategy",
    default=None,
    type=click.Choice(["lexical", "delegate"]),
    help="Consensus analysis strategy (default: from config)",
)
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--synthesizer", default=None, help="Which model synthesizes (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check at startup")
def main(
    topic: str,
    mode: str | None,
    rounds: int | None,
    models: str | None,
    parallelization: str | None,
    consensus_strategy: str | None,
    output_path: str | None,
    synthesizer: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """AI Roundtable -- multi-model debate with consensus tracking.

    \b
    Examples:
      roundtable "Should we use REST or GraphQL?" --rounds 2
      roundtable "Monorepo vs polyrepo?" --mode adversarial --models claude,openai
      roundtable "Is TDD worth it?" --mode delphi --consensus delegate
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    if not 1 <= effective_rounds <= config.defaults.max_rounds:
        console.print(
            f"[bold red]Error:[/bold red] --rounds must be between 1 and {config.defaults.max_rounds}."
        )
        sys.exit(1)

    effective_mode = mode or config.defaults.mode
    if effective_mode not in MODES:
        console.print(f"[bold red]Config error:[/bold red] Unknown debate mode '{effective_mode}'.")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    effective_synthesizer = synthesizer or config.defaults.synthesizer

    all_workers = _build_all_workers(config)

    if not all_workers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_workers = _check_and_filter_workers(all_workers)

    try:
        asyncio.run(
            _run_session(
                topic=topic,
                mode=effective_mode,
                config=config,
                all_workers=all_workers,
                rounds=effective_rounds,
                models_arg=models,
                parallelization=parallelization or config.defaults.parallelization,
                strategy=consensus_strategy or config.consensus.strategy,
                output_dir=effective_output,
                synthesizer_name=effective_synthesizer,
            )
        )
    except RoundtableError as exc:
        console.print(f"[bold red]Debate failed:[/bold red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
