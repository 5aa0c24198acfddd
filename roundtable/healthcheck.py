"""Worker health checks: ping each API before starting a debate."""

import asyncio
import logging

from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(name: str, worker: Worker) -> tuple[str, bool, str]:
    """Ping a single worker. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(worker.generate_raw_completion(_PING_PROMPT), timeout=_TIMEOUT_SEC)
        return name, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__


async def run_health_checks(workers: dict[str, Worker]) -> dict[str, tuple[bool, str]]:
    """Ping all workers in parallel.

    Returns:
        Dict mapping worker name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, w) for n, w in workers.items()))
    return {name: (ok, err) for name, ok, err in results}
