"""
Retry Logic with Exponential Backoff.

Used only for the external document-extraction service: a small, fixed
number of attempts with short exponential backoff before the service is
treated as unavailable for the current invocation. OCR and the remote
structured extractor are never retried.

Example:
    >>> config = RetryConfig(max_attempts=3, initial_delay_seconds=0.5)
    >>> text = retry_with_backoff(
    ...     client.post_document,
    ...     config,
    ...     (httpx.TimeoutException, httpx.TransportError),
    ...     payload
    ... )
"""

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """
    Configuration for retry logic.

    Attributes:
        max_attempts: Maximum number of attempts (including the first call).
        initial_delay_seconds: Delay before the first retry.
        max_delay_seconds: Upper bound for any single delay.
        exponential_base: Base for exponential backoff (delay *= base ** attempt).
        jitter: Whether to randomize delays between 50% and 150%.
    """
    max_attempts: int = 3
    initial_delay_seconds: float = 0.5
    max_delay_seconds: float = 4.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_config(cls, prefix: str = "external_service.retry") -> 'RetryConfig':
        """Build a RetryConfig from settings.yaml."""
        from config import get_config

        return cls(
            max_attempts=int(get_config(f"{prefix}.max_attempts", 3)),
            initial_delay_seconds=float(get_config(f"{prefix}.initial_delay_seconds", 0.5)),
            max_delay_seconds=float(get_config(f"{prefix}.max_delay_seconds", 4.0)),
            exponential_base=float(get_config(f"{prefix}.exponential_base", 2.0)),
            jitter=bool(get_config(f"{prefix}.jitter", True)),
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay (without jitter) after the given zero-based attempt."""
        return min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds
        )


def retry_with_backoff(
    func: Callable[..., Any],
    config: RetryConfig,
    retryable_exceptions: Tuple[Type[Exception], ...],
    *args,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs
) -> Any:
    """
    Call a function, retrying on the given exceptions with exponential backoff.

    Args:
        func: Function to execute.
        config: Retry configuration.
        retryable_exceptions: Exception types that trigger a retry.
        *args: Positional arguments for func.
        sleep: Sleep function, replaceable in tests.
        **kwargs: Keyword arguments for func.

    Returns:
        Result of the first successful call.

    Raises:
        The last exception once every attempt has failed. Exceptions not
        listed in retryable_exceptions propagate immediately.
    """
    attempts = max(1, config.max_attempts)

    for attempt in range(attempts):
        try:
            return func(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt == attempts - 1:
                logger.error(f"All {attempts} attempts failed: {type(e).__name__}: {e}")
                raise

            delay = config.delay_for(attempt)
            if config.jitter:
                delay = delay * (0.5 + random.random())

            logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed: {type(e).__name__}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            sleep(delay)


__all__ = ['RetryConfig', 'retry_with_backoff']
