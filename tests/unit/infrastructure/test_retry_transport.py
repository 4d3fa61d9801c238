"""Tests for RetryTransport (rate limiting + throttling/connection retry)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from ytresolve.infrastructure.http.rate_limiter import HostRateLimiter
from ytresolve.infrastructure.http.retry_transport import RetryPolicy, RetryTransport

_MODULE = "ytresolve.infrastructure.http.retry_transport"


def _make_response(
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    return httpx.Response(status_code=status, headers=headers or {})


def _make_request(url: str = "https://www.youtube.com/watch") -> httpx.Request:
    return httpx.Request("GET", url)


def _make_transport(
    responses: list | httpx.Response,
    *,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    max_backoff: float = 30.0,
) -> RetryTransport:
    """Create a RetryTransport around a mock inner transport."""
    wrapped = AsyncMock(spec=httpx.AsyncBaseTransport)
    if isinstance(responses, list):
        wrapped.handle_async_request = AsyncMock(side_effect=responses)
    else:
        wrapped.handle_async_request = AsyncMock(return_value=responses)
    return RetryTransport(
        wrapped=wrapped,
        rate_limiter=HostRateLimiter(rps=0.0),
        policy=RetryPolicy(
            max_retries=max_retries,
            backoff_base=backoff_base,
            max_backoff=max_backoff,
        ),
    )


class TestRetryPolicy:
    def test_retry_after_capped(self) -> None:
        assert RetryPolicy(max_backoff=10.0).delay(0, retry_after=120.0) == 10.0

    def test_exponential(self) -> None:
        policy = RetryPolicy(backoff_base=1.0, max_backoff=100.0)
        with patch(f"{_MODULE}.random") as rng:
            rng.uniform.return_value = 0.0
            assert [policy.delay(i) for i in range(3)] == [1.0, 2.0, 4.0]


class TestRetryTransport:
    @pytest.mark.asyncio
    async def test_passes_through_success(self) -> None:
        transport = _make_transport(_make_response(200))
        resp = await transport.handle_async_request(_make_request())
        assert resp.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 503])
    async def test_retries_throttled_then_succeeds(self, status: int) -> None:
        transport = _make_transport([_make_response(status), _make_response(200)])
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            resp = await transport.handle_async_request(_make_request())

        assert resp.status_code == 200
        assert m.sleep.await_count == 1
        assert transport._wrapped.handle_async_request.call_count == 2

    @pytest.mark.asyncio
    async def test_respects_retry_after_header(self) -> None:
        transport = _make_transport(
            [_make_response(429, headers={"Retry-After": "5"}), _make_response(200)]
        )
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            await transport.handle_async_request(_make_request())

        m.sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_http_date_retry_after_ignored(self) -> None:
        transport = _make_transport(
            [
                _make_response(
                    429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}
                ),
                _make_response(200),
            ],
            backoff_base=1.0,
        )
        with patch(f"{_MODULE}.asyncio") as m, patch(f"{_MODULE}.random") as rng:
            m.sleep = AsyncMock()
            rng.uniform.return_value = 0.0
            await transport.handle_async_request(_make_request())

        m.sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        transport = _make_transport(_make_response(429), max_retries=2)
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            resp = await transport.handle_async_request(_make_request())

        assert resp.status_code == 429
        assert m.sleep.await_count == 2
        assert transport._wrapped.handle_async_request.call_count == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_other_errors(self) -> None:
        for status in (400, 404, 500):
            transport = _make_transport(_make_response(status))
            resp = await transport.handle_async_request(_make_request())
            assert resp.status_code == status
            assert transport._wrapped.handle_async_request.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_connect_error(self) -> None:
        request = _make_request()
        transport = _make_transport(
            [httpx.ConnectError("refused", request=request), _make_response(200)]
        )
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            resp = await transport.handle_async_request(request)

        assert resp.status_code == 200
        assert m.sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_error_reraised_when_budget_spent(self) -> None:
        request = _make_request()
        transport = _make_transport(
            [httpx.ConnectError("refused", request=request)] * 2, max_retries=1
        )
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            with pytest.raises(httpx.ConnectError):
                await transport.handle_async_request(request)

        assert m.sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limiter_called_per_attempt(self) -> None:
        transport = _make_transport([_make_response(503), _make_response(200)])
        transport._rate_limiter.acquire = AsyncMock()
        with patch(f"{_MODULE}.asyncio") as m:
            m.sleep = AsyncMock()
            await transport.handle_async_request(_make_request())

        assert transport._rate_limiter.acquire.await_count == 2
        transport._rate_limiter.acquire.assert_awaited_with(
            "https://www.youtube.com/watch"
        )

    @pytest.mark.asyncio
    async def test_aclose_delegates(self) -> None:
        transport = _make_transport(_make_response(200))
        transport._wrapped.aclose = AsyncMock()
        await transport.aclose()
        transport._wrapped.aclose.assert_awaited_once()
