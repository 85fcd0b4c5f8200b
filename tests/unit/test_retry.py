"""
Tests for the retry mechanism and timeout helper.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from portfolio_sync.core import RequestTimeoutError, TimeoutConfig, with_timeout
from portfolio_sync.core.retry import RetryConfig, RetryStrategy, retry_async


# =============================================================================
# RetryConfig
# =============================================================================


class TestRetryConfig:
    """Test RetryConfig calculations."""

    def test_max_attempts(self):
        """Test max_attempts."""
        assert RetryConfig(max_retries=2).max_attempts == 3
        assert RetryConfig(max_retries=0).max_attempts == 1

    def test_fixed_delay(self):
        """Test fixed delay."""
        config = RetryConfig(delay=1.0)
        assert config.calculate_delay(1) == 1.0
        assert config.calculate_delay(3) == 1.0

    def test_linear_delay(self):
        """Test linear delay."""
        config = RetryConfig(delay=0.5, strategy=RetryStrategy.LINEAR)
        assert config.calculate_delay(1) == 0.5
        assert config.calculate_delay(3) == 1.5

    def test_should_retry(self):
        """Test should_retry."""
        config = RetryConfig(retryable_exceptions=(ConnectionError,))
        assert config.should_retry(ConnectionError("x"))
        assert not config.should_retry(ValueError("x"))


# =============================================================================
# retry_async
# =============================================================================


class TestRetryAsync:
    """Test retry_async behavior."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """Test success on first attempt."""
        func = AsyncMock(return_value="ok")

        result = await retry_async(func, "a", key="b", config=RetryConfig(delay=0))

        assert result.success
        assert result.result == "ok"
        assert result.attempts == 1
        func.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Test retry until success."""
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        on_retry = MagicMock()

        result = await retry_async(
            func, config=RetryConfig(max_retries=2, delay=0.01, on_retry=on_retry)
        )

        assert result.success
        assert result.attempts == 3
        assert on_retry.call_count == 2
        assert on_retry.call_args_list[0].args[0] == 1
        assert result.total_delay == pytest.approx(0.02)
        assert [record.ok for record in result.history] == [False, False, True]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        """Test exhausted retries."""
        func = AsyncMock(side_effect=ConnectionError("down"))

        result = await retry_async(func, config=RetryConfig(max_retries=2, delay=0))

        assert not result.success
        assert result.attempts == 3
        assert isinstance(result.exception, ConnectionError)
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_stops_immediately(self):
        """Test non-retryable exception."""
        func = AsyncMock(side_effect=ValueError("bad"))
        on_retry = MagicMock()

        result = await retry_async(
            func,
            config=RetryConfig(
                retryable_exceptions=(ConnectionError,), delay=0, on_retry=on_retry
            ),
        )

        assert not result.success
        assert result.attempts == 1
        on_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """Test zero retries."""
        func = AsyncMock(side_effect=ConnectionError("down"))

        result = await retry_async(func, config=RetryConfig(max_retries=0))

        assert result.attempts == 1
        assert result.total_delay == 0


# =============================================================================
# Timeouts
# =============================================================================


class TestTimeout:
    """Test timeout tiers and with_timeout."""

    def test_default_tiers(self):
        """Test default tiers."""
        config = TimeoutConfig()
        assert config.critical == 120.0
        assert config.summary == 60.0
        assert config.standard == 15.0
        assert config.fast == 10.0
        assert config.mutation == 30.0

    def test_from_dict_keeps_defaults(self):
        """Test from_dict."""
        config = TimeoutConfig.from_dict({"critical": "90", "unknown": 5})
        assert config.critical == 90.0
        assert config.fast == 10.0

    @pytest.mark.asyncio
    async def test_with_timeout_returns_result(self):
        """Test with_timeout result."""
        async def quick():
            return 42

        assert await with_timeout(quick(), 1.0, "quick") == 42

    @pytest.mark.asyncio
    async def test_with_timeout_raises(self):
        """Test with_timeout expiry."""
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(RequestTimeoutError) as exc_info:
            await with_timeout(slow(), 0.01, "GET /balances")

        assert exc_info.value.timeout == 0.01
        assert "GET /balances" in str(exc_info.value)
        assert cancelled.is_set()
