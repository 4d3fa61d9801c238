from __future__ import annotations

from .httpx_client import HttpxHttpClient, create_http_client
from .rate_limiter import HostRateLimiter, TokenBucket
from .retry_transport import RetryPolicy, RetryTransport

__all__ = [
    "HostRateLimiter",
    "HttpxHttpClient",
    "RetryPolicy",
    "RetryTransport",
    "TokenBucket",
    "create_http_client",
]
