"""Per-provider token bucket rate limiter.

Refill is computed lazily from elapsed time, so there is no background timer.
Only whole refill intervals are consumed; the fractional remainder carries over
to the next refill.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from roundtable.errors import RateLimitError

logger = logging.getLogger(__name__)

# acquire() raises instead of sleeping longer than this
DEFAULT_MAX_WAIT_SEC = 60.0


@dataclass(frozen=True)
class RateLimiterConfig:
    max_tokens: int
    refill_rate: int
    refill_interval_sec: float = 1.0

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if self.refill_rate < 1:
            raise ValueError("refill_rate must be at least 1")
        if self.refill_interval_sec <= 0:
            raise ValueError("refill_interval_sec must be positive")


DEFAULT_CONFIGS: dict[str, RateLimiterConfig] = {
    "anthropic": RateLimiterConfig(max_tokens=50, refill_rate=10),
    "openai": RateLimiterConfig(max_tokens=60, refill_rate=12),
    "google": RateLimiterConfig(max_tokens=60, refill_rate=12),
    "xai": RateLimiterConfig(max_tokens=60, refill_rate=12),
    "perplexity": RateLimiterConfig(max_tokens=20, refill_rate=4),
}

FALLBACK_CONFIG = RateLimiterConfig(max_tokens=30, refill_rate=6)


@dataclass
class TokenBucket:
    tokens: float
    last_refill: float
    config: RateLimiterConfig


class RateLimiter:
    """Token buckets keyed by provider tag.

    Each provider has its own asyncio.Lock; refill, the wait for refill and the
    decrement all happen under it. Buckets of different providers never share
    a lock, so draining one provider cannot stall another.
    """

    def __init__(
        self,
        configs: dict[str, RateLimiterConfig] | None = None,
        max_wait_sec: float = DEFAULT_MAX_WAIT_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_wait_sec = max_wait_sec
        self._base_configs = dict(DEFAULT_CONFIGS)
        self._custom_configs: dict[str, RateLimiterConfig] = dict(configs or {})
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, TokenBucket] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get_config(self, provider: str) -> RateLimiterConfig:
        if provider in self._custom_configs:
            return self._custom_configs[provider]
        return self._base_configs.get(provider, FALLBACK_CONFIG)

    def configure(self, provider: str, **overrides: float) -> RateLimiterConfig:
        """Replace the effective config for *provider*.

        An existing bucket keeps its accrued tokens, capped at the new maximum.
        """
        config = replace(self.get_config(provider), **overrides)
        self._custom_configs[provider] = config
        bucket = self._buckets.get(provider)
        if bucket is not None:
            self._refill(bucket)
            bucket.config = config
            bucket.tokens = min(bucket.tokens, config.max_tokens)
        logger.debug("Rate limit for %s configured: %s", provider, config)
        return config

    def reset(self, provider: str | None = None) -> None:
        """Forget one provider's bucket, or every bucket and custom config."""
        if provider is not None:
            self._buckets.pop(provider, None)
            return
        self._buckets.clear()
        self._custom_configs.clear()

    def available_tokens(self, provider: str) -> float:
        bucket = self._get_bucket(provider)
        self._refill(bucket)
        return bucket.tokens

    def try_acquire(self, provider: str, tokens: int = 1) -> bool:
        """Take *tokens* if they are available right now. Never waits."""
        lock = self._get_lock(provider)
        if lock.locked():
            # Someone is already waiting on this bucket; do not jump the queue
            return False
        bucket = self._get_bucket(provider)
        self._refill(bucket)
        if bucket.tokens >= tokens:
            bucket.tokens -= tokens
            return True
        return False

    async def acquire(self, provider: str, tokens: int = 1) -> None:
        """Take *tokens*, waiting for refills if needed.

        The max_wait_sec ceiling covers the whole call, including time spent
        queued behind other acquirers of the same provider.

        Raises:
            ValueError: If more tokens are requested than the bucket can ever hold.
            RateLimitError: If the total wait would exceed max_wait_sec.
        """
        config = self.get_config(provider)
        if tokens > config.max_tokens:
            raise ValueError(f"Requested {tokens} tokens but {provider} bucket holds at most {config.max_tokens}")

        started = self._clock()
        async with self._get_lock(provider):
            bucket = self._get_bucket(provider)
            self._refill(bucket)
            while bucket.tokens < tokens:
                wait_sec = self._wait_time(bucket, tokens)
                queued_sec = self._clock() - started
                if queued_sec + wait_sec > self.max_wait_sec:
                    raise RateLimitError(
                        f"Rate limit exceeded for {provider}. Would need to wait {wait_sec:.1f}s "
                        f"after {queued_sec:.1f}s queued",
                        provider=provider,
                        retry_after_sec=wait_sec,
                    )
                logger.debug("Rate limit wait for %s: %.2fs", provider, wait_sec)
                await self._sleep(wait_sec)
                self._refill(bucket)

            bucket.tokens -= tokens

    def _wait_time(self, bucket: TokenBucket, tokens: int) -> float:
        config = bucket.config
        intervals_needed = math.ceil((tokens - bucket.tokens) / config.refill_rate)
        # Part of the current interval has already elapsed
        elapsed_in_interval = self._clock() - bucket.last_refill
        return max(0.0, intervals_needed * config.refill_interval_sec - elapsed_in_interval)

    def _refill(self, bucket: TokenBucket) -> None:
        config = bucket.config
        elapsed = self._clock() - bucket.last_refill
        intervals = math.floor(elapsed / config.refill_interval_sec)
        if intervals <= 0:
            return
        bucket.tokens = min(config.max_tokens, bucket.tokens + intervals * config.refill_rate)
        bucket.last_refill += intervals * config.refill_interval_sec

    def _get_bucket(self, provider: str) -> TokenBucket:
        bucket = self._buckets.get(provider)
        if bucket is None:
            config = self.get_config(provider)
            bucket = TokenBucket(tokens=config.max_tokens, last_refill=self._clock(), config=config)
            self._buckets[provider] = bucket
        return bucket

    def _get_lock(self, provider: str) -> asyncio.Lock:
        lock = self._locks.get(provider)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[provider] = lock
        return lock
