from __future__ import annotations

import asyncio
import time

import pytest

from citeflow.application.services.rate_limiter import RateLimiter
from citeflow.domain.indexing import RateLimitPolicy


@pytest.mark.asyncio
async def test_concurrency_is_capped():
    limiter = RateLimiter(RateLimitPolicy(max_concurrent=2))
    active = 0
    peak = 0

    async def task():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return "ok"

    results = await asyncio.gather(*(limiter.run(task) for _ in range(6)))

    assert results == ["ok"] * 6
    assert peak == 2


@pytest.mark.asyncio
async def test_dispatches_are_spaced():
    limiter = RateLimiter(RateLimitPolicy(max_concurrent=3, min_interval_s=0.05))
    dispatched = []

    async def task():
        dispatched.append(time.monotonic())

    await asyncio.gather(*(limiter.run(task) for _ in range(3)))

    gaps = [b - a for a, b in zip(dispatched, dispatched[1:])]
    assert all(gap >= 0.04 for gap in gaps)


@pytest.mark.asyncio
async def test_errors_propagate_and_release_slot():
    limiter = RateLimiter(RateLimitPolicy(max_concurrent=1))

    async def boom():
        raise RuntimeError("boom")

    async def ok():
        return 1

    with pytest.raises(RuntimeError):
        await limiter.run(boom)
    assert await asyncio.wait_for(limiter.run(ok), timeout=1) == 1


@pytest.mark.asyncio
async def test_slot_passes_arguments():
    limiter = RateLimiter(name="test")

    async def add(a, b=0):
        return a + b

    assert await limiter.run(add, 1, b=2) == 3
    assert limiter.policy.max_concurrent == 1
