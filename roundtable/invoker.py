"""Wraps one worker call in rate limiting and retries.

The invoker never raises: callers get back either the response or the
classified error, the same way a failed provider call used to be reported
alongside the successful ones.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from roundtable.errors import ErrorKind, FatalWorkerError, RoundtableError
from roundtable.models import AgentResponse, RoundContext
from roundtable.rate_limit import RateLimiter
from roundtable.retry import RetryPolicy, classify_error, with_retry
from roundtable.toolkit import Toolkit
from roundtable.workers.base import Worker

logger = logging.getLogger(__name__)


class WorkerInvoker:
    """Runs Worker.generate_response behind the rate limiter and retry executor."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        retry_policy: RetryPolicy | None = None,
        classifier: Callable[[BaseException], ErrorKind] = classify_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy or RetryPolicy()
        self._classifier = classifier
        self._sleep = sleep

    async def invoke(
        self,
        worker: Worker,
        context: RoundContext,
        toolkit: Toolkit | None = None,
    ) -> AgentResponse | RoundtableError:
        """Call *worker* once (plus retries). Never raises.

        Every attempt takes a fresh rate-limit token, so a retried call is
        throttled like any other.
        """

        async def attempt() -> AgentResponse:
            await self.rate_limiter.acquire(worker.provider())
            return await worker.generate_response(context, toolkit)

        try:
            return await with_retry(
                attempt,
                classifier=self._classifier,
                policy=self.retry_policy,
                sleep=self._sleep,
                label=f"{worker.name()} round {context.current_round}",
            )
        except RoundtableError as exc:
            logger.warning(
                "Worker %s failed in round %d: %s", worker.name(), context.current_round, exc
            )
            return exc
        except Exception as exc:
            err = FatalWorkerError(f"Unexpected error: {exc}", provider=worker.name())
            logger.warning(
                "Worker %s unexpected failure in round %d: %s", worker.name(), context.current_round, exc
            )
            return err
