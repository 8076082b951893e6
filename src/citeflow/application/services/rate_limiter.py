"""
Concurrency and spacing limiter shared by all calls to one service.

Calls beyond the concurrency budget queue on a semaphore; dispatches are
spaced at least ``min_interval_s`` apart. Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from citeflow.domain.indexing import RateLimitPolicy


T = TypeVar("T")


class RateLimiter:
    """Semaphore plus minimum inter-dispatch interval."""

    def __init__(self, policy: Optional[RateLimitPolicy] = None, *, name: str = "default"):
        self.policy = policy or RateLimitPolicy()
        self.name = name
        self._semaphore = asyncio.Semaphore(max(1, self.policy.max_concurrent))
        self._lock = asyncio.Lock()
        self._last_dispatch = 0.0

    async def _wait_for_turn(self) -> None:
        """Wait until the minimum interval since the last dispatch has passed."""
        if self.policy.min_interval_s <= 0:
            return
        async with self._lock:
            elapsed = time.monotonic() - self._last_dispatch
            if elapsed < self.policy.min_interval_s:
                await asyncio.sleep(self.policy.min_interval_s - elapsed)
            self._last_dispatch = time.monotonic()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            await self._wait_for_turn()
            yield

    async def run(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Schedule ``fn(*args, **kwargs)`` under this limiter."""
        async with self.slot():
            return await fn(*args, **kwargs)
