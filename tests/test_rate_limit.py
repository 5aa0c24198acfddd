"""Tests for roundtable/rate_limit.py."""

import asyncio

import pytest

from roundtable.errors import ErrorKind, RateLimitError
from roundtable.rate_limit import FALLBACK_CONFIG, RateLimiter, RateLimiterConfig
from roundtable.retry import classify_error
from tests.conftest import FakeClock


def _drain(limiter: RateLimiter, provider: str, count: int) -> None:
    for _ in range(count):
        assert limiter.try_acquire(provider)


def test_new_bucket_starts_full(rate_limiter):
    assert rate_limiter.available_tokens("anthropic") == 50


def test_refill_after_one_interval_equals_refill_rate(rate_limiter, fake_clock):
    _drain(rate_limiter, "anthropic", 50)
    assert rate_limiter.available_tokens("anthropic") == 0

    fake_clock.advance(1.0)
    assert rate_limiter.available_tokens("anthropic") == 10


def test_refill_caps_at_max_tokens(rate_limiter, fake_clock):
    rate_limiter.try_acquire("anthropic")
    fake_clock.advance(10.0)
    assert rate_limiter.available_tokens("anthropic") == 50


def test_partial_interval_does_not_refill(rate_limiter, fake_clock):
    _drain(rate_limiter, "anthropic", 50)
    fake_clock.advance(0.9)
    assert rate_limiter.available_tokens("anthropic") == 0
    # The elapsed fraction carries over to the next refill
    fake_clock.advance(0.1)
    assert rate_limiter.available_tokens("anthropic") == 10


def test_try_acquire_fails_without_tokens(rate_limiter):
    _drain(rate_limiter, "anthropic", 50)
    assert rate_limiter.try_acquire("anthropic") is False
    assert rate_limiter.available_tokens("anthropic") == 0


def test_providers_are_independent(rate_limiter):
    _drain(rate_limiter, "anthropic", 50)
    assert rate_limiter.try_acquire("openai") is True
    assert rate_limiter.available_tokens("openai") == 59


def test_unknown_provider_uses_fallback_config(rate_limiter):
    assert rate_limiter.get_config("someone-new") == FALLBACK_CONFIG
    assert rate_limiter.available_tokens("someone-new") == FALLBACK_CONFIG.max_tokens


async def test_acquire_waits_for_refill(rate_limiter, fake_clock):
    _drain(rate_limiter, "anthropic", 50)
    await rate_limiter.acquire("anthropic")
    assert fake_clock.sleeps == [1.0]
    assert rate_limiter.available_tokens("anthropic") == 9


async def test_acquire_raises_when_wait_exceeds_ceiling(fake_clock):
    limiter = RateLimiter(
        configs={"slow": RateLimiterConfig(max_tokens=1, refill_rate=1, refill_interval_sec=120.0)},
        max_wait_sec=60.0,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )
    await limiter.acquire("slow")
    with pytest.raises(RateLimitError) as exc_info:
        await limiter.acquire("slow")
    assert exc_info.value.retry_after_sec == pytest.approx(120.0)
    assert exc_info.value.kind is ErrorKind.RATE_LIMITED
    assert exc_info.value.retryable
    assert fake_clock.sleeps == []


async def test_acquire_more_than_capacity_is_not_retryable(rate_limiter):
    with pytest.raises(ValueError, match="at most 50"):
        await rate_limiter.acquire("anthropic", tokens=51)
    assert classify_error(ValueError()) is ErrorKind.FATAL
    assert rate_limiter.available_tokens("anthropic") == 50


async def test_concurrent_acquirers_never_go_negative(fake_clock):
    limiter = RateLimiter(
        configs={"p": RateLimiterConfig(max_tokens=2, refill_rate=1)},
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )
    await asyncio.gather(*(limiter.acquire("p") for _ in range(5)))
    assert limiter.available_tokens("p") >= 0
    # Two from the full bucket, then one per refill interval
    assert sum(fake_clock.sleeps) == pytest.approx(3.0)


def test_configure_caps_accrued_tokens(rate_limiter):
    assert rate_limiter.available_tokens("anthropic") == 50
    rate_limiter.configure("anthropic", max_tokens=20)
    assert rate_limiter.available_tokens("anthropic") == 20
    assert rate_limiter.get_config("anthropic").refill_rate == 10


def test_configure_changes_future_refill(rate_limiter, fake_clock):
    _drain(rate_limiter, "anthropic", 50)
    rate_limiter.configure("anthropic", refill_rate=25)
    fake_clock.advance(1.0)
    assert rate_limiter.available_tokens("anthropic") == 25


def test_reset_single_provider_refills_it(rate_limiter):
    _drain(rate_limiter, "anthropic", 50)
    _drain(rate_limiter, "openai", 5)
    rate_limiter.reset("anthropic")
    assert rate_limiter.available_tokens("anthropic") == 50
    assert rate_limiter.available_tokens("openai") == 55


def test_reset_all_clears_custom_configs(rate_limiter):
    rate_limiter.configure("anthropic", max_tokens=5)
    rate_limiter.reset()
    assert rate_limiter.get_config("anthropic").max_tokens == 50
    assert rate_limiter.available_tokens("anthropic") == 50


def test_config_validation():
    with pytest.raises(ValueError):
        RateLimiterConfig(max_tokens=0, refill_rate=1)
    with pytest.raises(ValueError):
        RateLimiterConfig(max_tokens=1, refill_rate=1, refill_interval_sec=0)


async def test_waiting_provider_does_not_block_other_provider():
    clock = FakeClock()
    release = asyncio.Event()

    async def gated_sleep(seconds: float) -> None:
        await release.wait()
        clock.advance(seconds)

    limiter = RateLimiter(
        configs={"slow": RateLimiterConfig(max_tokens=1, refill_rate=1)},
        clock=clock,
        sleep=gated_sleep,
    )
    await limiter.acquire("slow")
    waiter = asyncio.create_task(limiter.acquire("slow"))
    await asyncio.sleep(0)

    # "slow" is parked in its refill wait; "fast" must still go through
    await limiter.acquire("fast")
    assert not waiter.done()

    release.set()
    await waiter


async def test_ceiling_counts_time_queued_behind_other_acquirers(fake_clock):
    async def yielding_sleep(seconds: float) -> None:
        await asyncio.sleep(0)
        fake_clock.advance(seconds)

    limiter = RateLimiter(
        configs={"p": RateLimiterConfig(max_tokens=1, refill_rate=1)},
        max_wait_sec=1.5,
        clock=fake_clock,
        sleep=yielding_sleep,
    )
    results = await asyncio.gather(*(limiter.acquire("p") for _ in range(3)), return_exceptions=True)

    # First takes the full bucket, second waits 1s, third has already queued 1s and needs 1s more
    assert results[:2] == [None, None]
    assert isinstance(results[2], RateLimitError)
    assert results[2].retry_after_sec == pytest.approx(1.0)
