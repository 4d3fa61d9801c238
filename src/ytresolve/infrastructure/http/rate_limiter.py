"""Per-host token-bucket rate limiting for outgoing requests."""

from __future__ import annotations

import asyncio
import time
from urllib.parse import urlparse


class TokenBucket:
    """Classic token bucket: *rate* tokens per second, at most *burst* stored."""

    def __init__(self, rate: float, burst: int = 5) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        if self._rate <= 0:
            return

        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens -= 1.0

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            self._burst, self._tokens + (now - self._last_refill) * self._rate
        )
        self._last_refill = now


class HostRateLimiter:
    """One ``TokenBucket`` per hostname. ``rps <= 0`` disables limiting."""

    def __init__(self, rps: float = 2.0, burst: int = 5) -> None:
        self._rps = rps
        self._burst = burst
        self._buckets: dict[str, TokenBucket] = {}

    def bucket_for(self, url: str) -> TokenBucket | None:
        host = urlparse(url).hostname
        if not host:
            return None
        bucket = self._buckets.get(host)
        if bucket is None:
            bucket = self._buckets[host] = TokenBucket(self._rps, self._burst)
        return bucket

    async def acquire(self, url: str) -> None:
        if self._rps <= 0:
            return
        bucket = self.bucket_for(url)
        if bucket is not None:
            await bucket.acquire()
