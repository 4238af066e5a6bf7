"""
Bounded retries for node and HTTP reads.

Only transport-level failures are retried: a timeout or a dropped
connection may succeed on the next attempt, while a missing block, a
mismatched proof key or a revert will not. Every attempt receives exactly
the same arguments, so a retried proof request is the same request.
"""

import asyncio
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from witness_toolkit.shared.exceptions import RetryableException
from witness_toolkit.shared.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)

DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def backoff_delay(
    attempt: int, base_delay: float, max_delay: float, exponential: bool = True
) -> float:
    """Delay before retry number `attempt` (0-based), capped at max_delay."""
    delay = base_delay * (2**attempt) if exponential else base_delay
    return min(delay, max_delay)


async def retry_async_operation(
    operation: Callable[..., T],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """
    Await `operation(*args, **kwargs)` up to `max_attempts` times.

    Args:
        operation: Async callable, typically a Web3Service method
        max_attempts: Total attempts, including the first
        base_delay: Delay before the first retry
        max_delay: Upper bound for any delay
        exponential: Double the delay after each failed attempt
        retryable_exceptions: Exception types worth another attempt
        operation_name: Name used in retry log lines

    Returns:
        Whatever the first successful attempt returns

    Raises:
        The last retryable error once attempts are exhausted, or any
        other error immediately
    """
    retryable = retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
    name = operation_name or getattr(operation, "__name__", "operation")

    attempt = 0
    while True:
        try:
            return await operation(*args, **kwargs)
        except retryable as e:
            attempt += 1
            if attempt >= max_attempts:
                _logger.warning(f"{name} gave up after {attempt} attempts: {e}")
                raise
            delay = backoff_delay(attempt - 1, base_delay, max_delay, exponential)
            _logger.warning(
                f"{name} failed (attempt {attempt}/{max_attempts}): {e}; "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)


class RetryConfig:
    """Retry settings shared by the services of one manager."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential: bool = True,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential = exponential
        self.retryable_exceptions = (
            retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
        )

    async def run(
        self,
        operation: Callable[..., T],
        *args: Any,
        operation_name: Optional[str] = None,
        **kwargs: Any,
    ) -> T:
        """Run an async operation under this config."""
        return await retry_async_operation(
            operation,
            *args,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential=self.exponential,
            retryable_exceptions=self.retryable_exceptions,
            operation_name=operation_name,
            **kwargs,
        )


# Defaults for services built without a manager
RPC_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)
HTTP_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)
