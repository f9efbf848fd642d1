import asyncio

import pytest

from app.domain.errors import RateLimited
from app.infra.rate_limit import RateLimiter


@pytest.mark.asyncio
async def test_fifth_call_passes_and_sixth_is_rejected(fake_redis):
    limiter = RateLimiter(fake_redis, limit=5, window_seconds=60)
    now = 1_700_000_000.0
    for offset in range(5):
        await limiter.enforce("get_matches", "u1", now=now + offset)
    with pytest.raises(RateLimited) as excinfo:
        await limiter.enforce("get_matches", "u1", now=now + 5)
    assert excinfo.value.action == "get_matches"
    assert excinfo.value.retry_after == 60


@pytest.mark.asyncio
async def test_calls_succeed_again_after_window(fake_redis):
    limiter = RateLimiter(fake_redis, limit=5, window_seconds=60)
    now = 1_700_000_000.0
    for _ in range(5):
        assert await limiter.allow("match_action", "u2", now=now)
    assert not await limiter.allow("match_action", "u2", now=now + 30)
    assert await limiter.allow("match_action", "u2", now=now + 61)


@pytest.mark.asyncio
async def test_rejected_attempts_are_not_counted(fake_redis):
    limiter = RateLimiter(fake_redis, limit=1, window_seconds=60)
    now = 1_700_000_000.0
    assert await limiter.allow("nearby", "u3", now=now)
    for step in range(1, 10):
        assert not await limiter.allow("nearby", "u3", now=now + step)
    # only the first attempt sits in the window, so it frees up on schedule
    assert await limiter.allow("nearby", "u3", now=now + 61)


@pytest.mark.asyncio
async def test_limits_are_per_action_and_identifier(fake_redis):
    limiter = RateLimiter(fake_redis, limit=1, window_seconds=60)
    now = 1_700_000_000.0
    assert await limiter.allow("get_matches", "u4", now=now)
    assert await limiter.allow("match_action", "u4", now=now)
    assert await limiter.allow("get_matches", "u5", now=now)
    assert not await limiter.allow("get_matches", "u4", now=now)


@pytest.mark.asyncio
async def test_clear_resets_budget(fake_redis):
    limiter = RateLimiter(fake_redis, limit=1, window_seconds=60)
    now = 1_700_000_000.0
    assert await limiter.allow("get_matches", "u6", now=now)
    assert await limiter.attempts("get_matches", "u6", now=now) == 1
    await limiter.clear("get_matches", "u6")
    assert await limiter.allow("get_matches", "u6", now=now)


@pytest.mark.asyncio
async def test_concurrent_attempts_respect_limit(fake_redis):
    limiter = RateLimiter(fake_redis, limit=5, window_seconds=60)
    now = 1_700_000_000.0
    results = await asyncio.gather(*[limiter.allow("get_matches", "u7", now=now) for _ in range(10)])
    assert sum(results) == 5
    assert await limiter.attempts("get_matches", "u7", now=now) == 5
