"""IRC flood control: token bucket for the outbound queue."""

from __future__ import annotations

import asyncio
import time


class TokenBucket:
    """Allows bursts of up to ``limit`` lines, refilled at ``refill_rate`` lines per second."""

    def __init__(self, limit: int, refill_rate: float | None = None) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._limit = limit
        self._refill_rate = float(refill_rate if refill_rate is not None else limit)
        self._tokens = float(limit)
        self._last_refill = time.monotonic()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def delay(self) -> float:
        """Seconds until one token is available; 0 when one is available now."""
        self._refill()
        if self._tokens >= 1:
            return 0.0
        return (1 - self._tokens) / self._refill_rate

    def try_take(self) -> bool:
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def take(self) -> None:
        """Wait for a token and consume it."""
        while not self.try_take():
            await asyncio.sleep(self.delay())

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(float(self._limit), self._tokens + (now - self._last_refill) * self._refill_rate)
        self._last_refill = now
