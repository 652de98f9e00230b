"""Tests for capacity limiting and retry."""
import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from freight_invoice.core.rate_limit import (
    CapacityLimiter,
    RateLimitedExecutor,
    RetryError,
    retry_with_backoff,
)


@pytest.fixture
def mock_logger():
    """Mock logger for testing."""
    return MagicMock(spec=logging.Logger)


class TestCapacityLimiter:
    """Test CapacityLimiter functionality."""

    def test_capacity_limiter_init(self):
        limiter = CapacityLimiter(5)
        assert limiter.total_tokens == 5
        assert limiter.available_tokens == 5
        assert limiter.borrowed_tokens == 0

    @pytest.mark.asyncio
    async def test_capacity_limiter_context_manager(self):
        limiter = CapacityLimiter(2)

        async with limiter:
            assert limiter.available_tokens == 1
            assert limiter.borrowed_tokens == 1

        assert limiter.available_tokens == 2
        assert limiter.borrowed_tokens == 0

    @pytest.mark.asyncio
    async def test_capacity_is_never_exceeded(self):
        limiter = CapacityLimiter(2)
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with limiter:
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))

        assert peak == 2


class TestRetryWithBackoff:
    """Test retry_with_backoff functionality."""

    @pytest.mark.asyncio
    async def test_successful_operation(self, mock_logger):
        async def successful_op():
            return "success"

        result = await retry_with_backoff(successful_op, logger=mock_logger)
        assert result == "success"
        mock_logger.warning.assert_not_called()
        mock_logger.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_operation_with_retries(self, mock_logger):
        """Fails twice, then succeeds."""
        call_count = 0

        async def flaky_op():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TimeoutError("Transient error")
            return "success"

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(
                flaky_op,
                max_retries=3,
                retry_exceptions=(TimeoutError,),
                logger=mock_logger,
                operation_name="test_op"
            )

        assert result == "success"
        assert call_count == 3
        assert mock_logger.warning.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, mock_logger):
        async def failing_op():
            raise ValueError("Persistent error")

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RetryError) as exc_info:
                await retry_with_backoff(
                    failing_op,
                    max_retries=2,
                    logger=mock_logger,
                    operation_name="failing_test"
                )

        error = exc_info.value
        assert error.operation_name == "failing_test"
        assert error.attempts == 2
        assert isinstance(error.last_exception, ValueError)
        assert mock_logger.warning.call_count == 1
        mock_logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_retryable_exception_stops_immediately(self, mock_logger):
        async def selective_fail():
            raise KeyError("Not retryable")

        with pytest.raises(RetryError) as exc_info:
            await retry_with_backoff(
                selective_fail,
                retry_exceptions=(ValueError,),
                logger=mock_logger
            )

        error = exc_info.value
        assert isinstance(error.last_exception, KeyError)
        assert error.attempts == 1
        mock_logger.warning.assert_not_called()

    @pytest.mark.asyncio
    async def test_backoff_calculation(self, mock_logger):
        async def failing_op():
            raise ValueError("Always fails")

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RetryError):
                await retry_with_backoff(
                    failing_op,
                    max_retries=4,
                    base_delay=1.0,
                    max_delay=3.0,
                    jitter_range=0.0,
                    logger=mock_logger
                )

        delays = [call.args[0] for call in mock_sleep.call_args_list]
        assert delays == [1.0, 2.0, 3.0]


class TestRateLimitedExecutor:
    @pytest.mark.asyncio
    async def test_execute_retries_configured_exceptions(self):
        executor = RateLimitedExecutor(
            capacity=1, max_retries=3, base_delay=0.0, jitter_range=0.0, retry_exceptions=(ConnectionError,)
        )
        operation = AsyncMock(side_effect=[ConnectionError("reset"), "ok"])

        result = await executor.execute(operation, operation_name="fields invoice.pdf")

        assert result == "ok"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_capacity_released_after_failure(self):
        executor = RateLimitedExecutor(capacity=2, max_retries=1, retry_exceptions=(ConnectionError,))

        with pytest.raises(RetryError):
            await executor.execute(AsyncMock(side_effect=ConnectionError("reset")))

        assert executor.stats == {"available_capacity": 2, "borrowed_capacity": 0, "total_capacity": 2}
