"""httpx-backed implementation of the resolver's HTTP collaborator."""

from __future__ import annotations

from collections.abc import Mapping

import httpx
import structlog

from ytresolve.domain.exceptions import TransportError
from ytresolve.infrastructure.config.schema import AppConfig

from .rate_limiter import HostRateLimiter
from .retry_transport import RetryPolicy, RetryTransport

log = structlog.get_logger(__name__)


class HttpxHttpClient:
    """GET-only client returning raw bytes.

    Any httpx failure and any HTTP status >= 400 is raised as
    ``TransportError``. The client is owned by the caller unless it was
    created here (``owns_client``).
    """

    def __init__(self, client: httpx.AsyncClient, *, owns_client: bool = False) -> None:
        self._client = client
        self._owns_client = owns_client

    async def get(self, url: str, params: Mapping[str, str] | None = None) -> bytes:
        try:
            resp = await self._client.get(url, params=dict(params) if params else None)
        except httpx.HTTPError as exc:
            log.warning("http_request_failed", url=url, error=str(exc))
            raise TransportError(str(exc) or type(exc).__name__) from exc

        if resp.status_code >= 400:
            log.warning("http_status_error", url=url, status=resp.status_code)
            raise TransportError(f"HTTP {resp.status_code} for {url}")

        log.debug("http_get", url=url, status=resp.status_code, size=len(resp.content))
        return resp.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxHttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def create_http_client(config: AppConfig) -> HttpxHttpClient:
    """Build an ``HttpxHttpClient`` with per-host rate limiting and retries."""
    transport = RetryTransport(
        wrapped=httpx.AsyncHTTPTransport(),
        rate_limiter=HostRateLimiter(rps=config.http_rate_limit_rps),
        policy=RetryPolicy(max_retries=config.http_max_retries),
    )
    client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )
    log.debug(
        "http_client_initialized",
        rate_limit_rps=config.http_rate_limit_rps,
        max_retries=config.http_max_retries,
    )
    return HttpxHttpClient(client, owns_client=True)
