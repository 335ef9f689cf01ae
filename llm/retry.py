"""Retry utilities for LLM API calls with exponential backoff."""

import asyncio
import random
from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar

from utils import get_logger

logger = get_logger(__name__)
T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 5,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        """Initialize retry configuration.

        Args:
            max_retries: Maximum number of retry attempts
            initial_delay: Initial delay in seconds
            max_delay: Maximum delay in seconds
            exponential_base: Base for exponential backoff
            jitter: Whether to add random jitter to delays
        """
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    @classmethod
    def from_config(cls) -> "RetryConfig":
        """Build a RetryConfig from the global Config values."""
        from config import Config

        return cls(
            max_retries=Config.RETRY_MAX_ATTEMPTS,
            initial_delay=Config.RETRY_INITIAL_DELAY,
            max_delay=Config.RETRY_MAX_DELAY,
            exponential_base=Config.RETRY_EXPONENTIAL_BASE,
            jitter=Config.RETRY_JITTER,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for a given retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        # Exponential backoff capped at max_delay
        delay = min(self.initial_delay * (self.exponential_base**attempt), self.max_delay)

        # Add jitter to avoid thundering herd
        if self.jitter:
            delay = delay * (0.5 + random.random())

        return delay


def is_rate_limit_error(error: Exception) -> bool:
    """Check if an error is a rate limit error.

    Args:
        error: Exception to check

    Returns:
        True if this is a rate limit error
    """
    error_str = str(error).lower()

    rate_limit_indicators = [
        "429",
        "rate limit",
        "quota",
        "too many requests",
        "resourceexhausted",
    ]

    return any(indicator in error_str for indicator in rate_limit_indicators)


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if this error should trigger a retry
    """
    # Rate limits are always retryable
    if is_rate_limit_error(error):
        return True

    error_str = str(error).lower()
    error_type = type(error).__name__

    # LiteLLM-specific errors
    if "RateLimitError" in error_type or "APIConnectionError" in error_type:
        return True

    retryable_indicators = [
        "timeout",
        "connection",
        "server error",
        "500",
        "502",
        "503",
        "504",
    ]

    return any(indicator in error_str for indicator in retryable_indicators)


def with_retry(config: Optional[RetryConfig] = None):
    """Decorator adding retry logic with exponential backoff to a coroutine.

    Args:
        config: RetryConfig instance. If None, the decorated method's
            ``self.retry_config`` is used, falling back to defaults.

    Returns:
        Decorator function
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            # Explicit config wins, then the instance's own, then defaults
            retry_config = config
            if retry_config is None and args and hasattr(args[0], "retry_config"):
                retry_config = args[0].retry_config
            if retry_config is None:
                retry_config = RetryConfig()

            last_error = None

            for attempt in range(retry_config.max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_error = e

                    # Don't retry on last attempt
                    if attempt == retry_config.max_retries:
                        break

                    # Non-retryable errors go straight to the caller
                    if not is_retryable_error(e):
                        raise

                    # Calculate delay
                    delay = retry_config.get_delay(attempt)

                    error_type = "Rate limit" if is_rate_limit_error(e) else "Retryable"
                    logger.warning(f"{error_type} error: {str(e)}")
                    logger.warning(
                        f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{retry_config.max_retries})"
                    )

                    await asyncio.sleep(delay)

            # All retries exhausted
            raise last_error

        return wrapper

    return decorator
