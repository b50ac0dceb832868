"""Tests for async utility functions."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from gitlab_change_advisor.utils.async_helpers import (
    AdvisorError,
    AuthenticationError,
    IssueStoreError,
    NetworkError,
    NotFoundError,
    RateLimiter,
    RateLimitError,
    TimeoutError,
    create_retry,
    with_timeout,
)


def fast_retry(max_attempts: int = 3, **kwargs):  # type: ignore[no-untyped-def]
    return create_retry(max_attempts=max_attempts, min_wait=0.01, max_wait=0.02, **kwargs)


class TestCustomExceptions:
    """Test custom exception classes."""

    def test_advisor_error_base(self) -> None:
        error = AdvisorError("base error")
        assert str(error) == "base error"
        assert isinstance(error, Exception)

    @pytest.mark.parametrize(
        "error_type", [AuthenticationError, NetworkError, NotFoundError, RateLimitError]
    )
    def test_issue_store_errors(self, error_type: type[Exception]) -> None:
        error = error_type("failed")
        assert isinstance(error, IssueStoreError)
        assert isinstance(error, AdvisorError)

    def test_rate_limit_error_with_retry_after(self) -> None:
        error = RateLimitError("slow down", retry_after=30)
        assert error.retry_after == 30

    def test_rate_limit_error_without_retry_after(self) -> None:
        assert RateLimitError("slow down").retry_after is None

    def test_timeout_error(self) -> None:
        error = TimeoutError("timed out")
        assert isinstance(error, AdvisorError)
        assert not isinstance(error, IssueStoreError)


class TestCreateRetry:
    """Test the retry decorator factory."""

    async def test_succeeds_first_try(self) -> None:
        calls = 0

        @fast_retry()
        async def successful_call() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        assert await successful_call() == "ok"
        assert calls == 1

    async def test_retries_on_timeout(self) -> None:
        calls = 0

        @fast_retry()
        async def flaky_call() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ReadTimeout("slow")
            return "ok"

        assert await flaky_call() == "ok"
        assert calls == 3

    async def test_retries_on_rate_limit(self) -> None:
        calls = 0

        @fast_retry()
        async def limited_call() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RateLimitError("slow down")
            return "ok"

        assert await limited_call() == "ok"
        assert calls == 2

    async def test_gives_up_after_max_attempts(self) -> None:
        calls = 0

        @fast_retry(max_attempts=2)
        async def always_fails() -> str:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await always_fails()
        assert calls == 2

    async def test_does_not_retry_other_exceptions(self) -> None:
        calls = 0

        @fast_retry()
        async def rejected() -> str:
            nonlocal calls
            calls += 1
            raise AuthenticationError("bad token")

        with pytest.raises(AuthenticationError):
            await rejected()
        assert calls == 1

    async def test_custom_retry_on(self) -> None:
        calls = 0

        @fast_retry(retry_on=(NotFoundError,))
        async def eventually_found() -> str:
            nonlocal calls
            calls += 1
            if calls < 2:
                raise NotFoundError("not yet")
            return "found"

        assert await eventually_found() == "found"


class TestRateLimiter:
    """Test the token bucket rate limiter."""

    def test_properties(self) -> None:
        limiter = RateLimiter(rate=5)
        assert limiter.rate == 5
        assert limiter.capacity == 5
        assert limiter.available_tokens == pytest.approx(5, abs=0.1)

    async def test_allows_within_capacity(self) -> None:
        limiter = RateLimiter(rate=100, capacity=10)
        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        assert time.monotonic() - start < 0.1

    async def test_throttles_when_exhausted(self) -> None:
        limiter = RateLimiter(rate=10, capacity=2)
        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire()
        assert time.monotonic() - start >= 0.08

    async def test_context_manager(self) -> None:
        limiter = RateLimiter(rate=100, capacity=1)
        async with limiter as acquired:
            assert acquired is limiter

    async def test_acquire_more_than_capacity_raises(self) -> None:
        limiter = RateLimiter(rate=1, capacity=2)
        with pytest.raises(ValueError, match="capacity"):
            await limiter.acquire(3)


class TestWithTimeout:
    """Test the timeout wrapper."""

    async def test_completes_within_timeout(self) -> None:
        async def quick() -> int:
            return 7

        assert await with_timeout(quick(), 1.0) == 7

    async def test_no_timeout(self) -> None:
        async def quick() -> int:
            await asyncio.sleep(0.01)
            return 7

        assert await with_timeout(quick(), None) == 7

    async def test_raises_advisor_timeout(self) -> None:
        with pytest.raises(TimeoutError, match="after 0.01s"):
            await with_timeout(asyncio.sleep(1), 0.01)

    async def test_custom_message(self) -> None:
        with pytest.raises(TimeoutError, match="search timed out"):
            await with_timeout(asyncio.sleep(1), 0.01, "search timed out")
