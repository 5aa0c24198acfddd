"""Bounded retry with exponential backoff for a single async remote call.

Provider-agnostic: it gets a thunk and a classifier and nothing else.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from roundtable.errors import ErrorKind, RateLimitError, RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Classifier = Callable[[BaseException], ErrorKind]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget. max_retries counts attempts after the first one."""

    max_retries: int = 3
    base_delay_sec: float = 1.0
    max_delay_sec: float = 30.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_sec < 0 or self.max_delay_sec < 0:
            raise ValueError("retry delays must be >= 0")


def classify_error(exc: BaseException) -> ErrorKind:
    """Default classifier: trust our own errors, treat timeouts and
    connection failures as transient, everything else as fatal."""
    kind = getattr(exc, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay before retry number *attempt* (0-based), jittered into [50%, 100%]."""
    capped = min(policy.base_delay_sec * policy.backoff_factor ** attempt, policy.max_delay_sec)
    return capped * 0.5 + random.random() * capped * 0.5


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    classifier: Classifier = classify_error,
    policy: RetryPolicy = RetryPolicy(),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """Run *fn*, retrying retryable failures within the policy's budget.

    Raises:
        The original exception when it is classified as non-retryable.
        RetriesExhaustedError: When a retryable failure persists past the budget.
    """
    attempts = policy.max_retries + 1
    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as exc:
            kind = classifier(exc)
            if not kind.retryable:
                logger.debug("%s failed with non-retryable %s: %s", label, kind.value, exc)
                raise
            if attempt == attempts - 1:
                logger.warning("%s failed after %d attempts: %s", label, attempts, exc)
                raise RetriesExhaustedError(exc, attempts) from exc

            delay = backoff_delay(attempt, policy)
            if isinstance(exc, RateLimitError) and exc.retry_after_sec:
                # A suggested wait is honoured up to the policy ceiling
                delay = max(delay, min(exc.retry_after_sec, policy.max_delay_sec))
            logger.info(
                "%s hit %s error (attempt %d/%d), retrying in %.2fs: %s",
                label, kind.value, attempt + 1, attempts, delay, exc,
            )
            await sleep(delay)

    raise AssertionError("unreachable")
