"""
Retry logic with exponential backoff for calls to the embedding provider.

The provider is slow and occasionally unavailable or rate limited; callers
wrap each request so transient failures are retried within a bounded budget.
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.last_exception = last_exception


def retry_call(
    func: Callable,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
):
    """
    Call func, retrying with exponential backoff on the given exceptions.

    Args:
        func: Callable to invoke
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)
        sleep: Sleep function, replaceable in tests

    Raises:
        RetryError: When every attempt failed with a retryable exception
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            # Don't sleep after the last attempt
            if attempt >= max_retries:
                raise RetryError(
                    f"Failed after {max_retries + 1} attempts: {e}", last_exception=e
                ) from e

            current_delay = min(delay, max_delay)
            if on_retry:
                on_retry(attempt + 1, e, current_delay)
            else:
                logger.debug("Retry %d after %s; sleeping %.2fs", attempt + 1, e, current_delay)

            sleep(current_delay)
            delay *= exponential_base


