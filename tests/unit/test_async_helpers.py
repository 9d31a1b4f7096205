"""Tests for async utility functions."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from issue_lifecycle.utils.async_helpers import (
    OperationTimeoutError,
    RateLimiter,
    TransientHTTPError,
    create_retry,
    with_timeout,
)

fast_retry = create_retry(max_attempts=3, min_wait=0.01, max_wait=0.02)


class TestTransientHTTPError:
    """Test the retryable HTTP error."""

    def test_carries_status_and_retry_after(self) -> None:
        """Test that status code and retry_after are kept."""
        error = TransientHTTPError("busy", status_code=503, retry_after=7)
        assert str(error) == "busy"
        assert error.status_code == 503
        assert error.retry_after == 7

    def test_retry_after_defaults_to_none(self) -> None:
        """Test retry_after default."""
        assert TransientHTTPError("busy", status_code=429).retry_after is None


class TestRetryDecorator:
    """Test retry decorator functionality."""

    async def test_succeeds_first_try(self) -> None:
        """Test that successful calls don't trigger retry."""
        call_count = 0

        @fast_retry
        async def successful_call() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_call() == "success"
        assert call_count == 1

    async def test_retries_on_timeout(self) -> None:
        """Test retry on httpx.TimeoutException."""
        call_count = 0

        @fast_retry
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise httpx.TimeoutException("timeout")
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 3

    async def test_retries_on_network_error(self) -> None:
        """Test retry on httpx.NetworkError."""
        call_count = 0

        @fast_retry
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise httpx.NetworkError("network error")
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 2

    async def test_retries_on_transient_http_error(self) -> None:
        """Test retry on 429/5xx responses."""
        call_count = 0

        @fast_retry
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise TransientHTTPError("server error", status_code=502)
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 2

    async def test_gives_up_after_max_attempts(self) -> None:
        """Test that retry stops after max attempts and re-raises."""
        call_count = 0

        @fast_retry
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise httpx.TimeoutException("always timeout")

        with pytest.raises(httpx.TimeoutException):
            await always_fails()

        assert call_count == 3

    async def test_does_not_retry_other_exceptions(self) -> None:
        """Test that non-retryable exceptions are not retried."""
        call_count = 0

        @fast_retry
        async def raises_value_error() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("not retryable")

        with pytest.raises(ValueError):
            await raises_value_error()

        assert call_count == 1

    async def test_create_retry_custom_exceptions(self) -> None:
        """Test creating a retry decorator for custom exception types."""
        call_count = 0

        custom_retry = create_retry(
            max_attempts=2,
            min_wait=0.01,
            max_wait=0.1,
            retry_on=(KeyError,),
        )

        @custom_retry
        async def custom_flaky() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise KeyError("retry me")
            return "success"

        assert await custom_flaky() == "success"
        assert call_count == 2


class TestRateLimiter:
    """Test rate limiter functionality."""

    async def test_allows_within_rate(self) -> None:
        """Test that operations within rate limit proceed immediately."""
        limiter = RateLimiter(rate=100, capacity=10)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed < 0.1

    async def test_throttles_when_exceeded(self) -> None:
        """Test that operations exceeding rate are throttled."""
        limiter = RateLimiter(rate=10, capacity=2)

        await limiter.acquire(2)

        start = time.monotonic()
        await limiter.acquire(1)
        elapsed = time.monotonic() - start

        # 1 token at 10 tokens per second
        assert elapsed >= 0.09

    async def test_properties(self) -> None:
        """Test rate limiter property accessors."""
        limiter = RateLimiter(rate=10, capacity=20)

        assert limiter.rate == 10
        assert limiter.capacity == 20
        assert limiter.available_tokens <= 20

    async def test_capacity_defaults_to_rate(self) -> None:
        """Test default capacity, never below one token."""
        assert RateLimiter(rate=5).capacity == 5
        assert RateLimiter(rate=0.5).capacity == 1.0

    async def test_context_manager(self) -> None:
        """Test using rate limiter as context manager."""
        limiter = RateLimiter(rate=100, capacity=10)

        async with limiter:
            pass

        assert limiter.available_tokens < 10

    async def test_acquire_exceeds_capacity(self) -> None:
        """Test acquiring more tokens than capacity raises error."""
        limiter = RateLimiter(rate=10, capacity=5)

        with pytest.raises(ValueError, match="Cannot acquire"):
            await limiter.acquire(10)


class TestWithTimeout:
    """Test timeout wrapper."""

    async def test_succeeds(self) -> None:
        """Test with_timeout when operation completes in time."""

        async def fast_operation() -> str:
            await asyncio.sleep(0.01)
            return "done"

        assert await with_timeout(fast_operation(), timeout=1.0) == "done"

    async def test_times_out(self) -> None:
        """Test with_timeout when operation exceeds timeout."""

        async def slow_operation() -> str:
            await asyncio.sleep(10)
            return "done"

        with pytest.raises(OperationTimeoutError, match="timed out after"):
            await with_timeout(slow_operation(), timeout=0.01)

    async def test_custom_message(self) -> None:
        """Test with_timeout with custom error message."""

        async def slow_operation() -> str:
            await asyncio.sleep(10)
            return "done"

        with pytest.raises(OperationTimeoutError, match="custom timeout"):
            await with_timeout(
                slow_operation(),
                timeout=0.01,
                error_message="custom timeout message",
            )

    async def test_propagates_exceptions(self) -> None:
        """Test that exceptions from the operation pass through unchanged."""

        async def failing_operation() -> str:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await with_timeout(failing_operation(), timeout=1.0)
