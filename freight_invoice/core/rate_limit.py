"""Concurrency limiting and retry for calls to the document-understanding model."""
import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import anyio

T = TypeVar("T")


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, operation_name: str, last_exception: Exception, attempts: int):
        self.operation_name = operation_name
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_exception}"
        )


class CapacityLimiter:
    """Async capacity limiter backed by ``anyio.CapacityLimiter``."""

    def __init__(self, total_tokens: int):
        self.total_tokens = total_tokens
        self._limiter = anyio.CapacityLimiter(total_tokens)

    async def __aenter__(self):
        await self._limiter.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self._limiter.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def available_tokens(self) -> int:
        return int(self._limiter.available_tokens)

    @property
    def borrowed_tokens(self) -> int:
        return self._limiter.borrowed_tokens


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 10.0,
    jitter_range: float = 3.0,
    retry_exceptions: tuple = (Exception,),
    operation_name: str | None = None,
    logger: logging.Logger | None = None
) -> T:
    """Execute an async operation with exponential backoff retry logic.

    Args:
        operation: Async function to execute
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Base delay for exponential backoff (default: 2.0 seconds)
        max_delay: Maximum delay between retries (default: 10.0 seconds)
        jitter_range: Random jitter range added to delay (default: 3.0 seconds)
        retry_exceptions: Tuple of exceptions that should trigger retry
        operation_name: Name for logging purposes (optional)
        logger: Logger instance to use (optional, defaults to module logger)

    Returns:
        Result of successful operation

    Raises:
        RetryError: When all attempts are exhausted, or on a non-retryable exception
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    operation_desc = operation_name or "operation"
    last_exception: Exception | None = None

    for attempt in range(max_retries):
        try:
            return await operation()
        except retry_exceptions as exc:
            last_exception = exc

            if attempt < max_retries - 1:
                delay = min(max_delay, base_delay * (2 ** attempt))
                total_delay = delay + random.uniform(0, jitter_range)

                logger.warning(
                    f"[RETRY] {operation_desc} - Attempt {attempt + 1}/{max_retries} failed: "
                    f"{str(exc)[:100]}. Retrying in {total_delay:.1f}s..."
                )
                await asyncio.sleep(total_delay)
                continue
            logger.error(
                f"[RETRY] {operation_desc} - Exhausted retries ({max_retries}): "
                f"{str(exc)[:150]}"
            )
            raise RetryError(operation_desc, exc, max_retries)
        except Exception as exc:
            logger.error(
                f"[RETRY] {operation_desc} - Non-retryable exception: "
                f"{str(exc)[:150]}"
            )
            raise RetryError(operation_desc, exc, attempt + 1)

    raise RetryError(operation_desc, last_exception or Exception("No attempts made"), max_retries)


class RateLimitedExecutor:
    """Executor that combines capacity limiting and retry logic."""

    def __init__(
        self,
        capacity: int,
        max_retries: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 10.0,
        jitter_range: float = 3.0,
        retry_exceptions: tuple = (Exception,)
    ):
        self.limiter = CapacityLimiter(capacity)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_range = jitter_range
        self.retry_exceptions = retry_exceptions
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str | None = None
    ) -> T:
        """Execute operation with both capacity limiting and retry logic."""
        async def limited_operation():
            async with self.limiter:
                return await operation()

        return await retry_with_backoff(
            operation=limited_operation,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter_range=self.jitter_range,
            retry_exceptions=self.retry_exceptions,
            operation_name=operation_name,
            logger=self._logger
        )

    @property
    def stats(self) -> dict:
        """Get current executor statistics."""
        return {
            "available_capacity": self.limiter.available_tokens,
            "borrowed_capacity": self.limiter.borrowed_tokens,
            "total_capacity": self.limiter.total_tokens
        }
