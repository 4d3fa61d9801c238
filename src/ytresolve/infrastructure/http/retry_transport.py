"""httpx transport with per-host rate limiting and bounded retries."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass

import httpx
import structlog

from .rate_limiter import HostRateLimiter

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """When and how long to wait before resending a request."""

    max_retries: int = 2
    backoff_base: float = 0.5
    max_backoff: float = 10.0
    retryable_status_codes: frozenset[int] = frozenset({429, 503})

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        if retry_after is not None:
            return min(retry_after, self.max_backoff)
        jitter = random.uniform(0, self.backoff_base)  # noqa: S311
        return min(self.backoff_base * (2**attempt) + jitter, self.max_backoff)


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    # Only the delta-seconds form; HTTP-date values are ignored.
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps a transport: waits for the host's rate limit before each send,
    retries throttled answers (429/503) and connection-level failures.

    The last response or exception is passed through unchanged once the
    retry budget is spent.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: HostRateLimiter,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._policy = policy or RetryPolicy()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            await self._rate_limiter.acquire(str(request.url))
            try:
                response = await self._wrapped.handle_async_request(request)
            except (httpx.ConnectError, httpx.ReadTimeout) as exc:
                if attempt >= self._policy.max_retries:
                    raise
                delay = self._policy.delay(attempt)
                log.info(
                    "http_retry_after_error",
                    url=str(request.url),
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
            else:
                if (
                    response.status_code not in self._policy.retryable_status_codes
                    or attempt >= self._policy.max_retries
                ):
                    return response
                await response.aread()
                await response.aclose()
                delay = self._policy.delay(
                    attempt, _retry_after_seconds(response.headers)
                )
                log.info(
                    "http_retry_after_status",
                    url=str(request.url),
                    status=response.status_code,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )

            await asyncio.sleep(delay)
            attempt += 1

    async def aclose(self) -> None:
        await self._wrapped.aclose()
