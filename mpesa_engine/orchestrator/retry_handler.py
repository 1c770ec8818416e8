"""Retry logic with exponential backoff"""

import time
from typing import Callable, Any, Tuple, Type
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)


def retry_with_exponential_backoff(
    func: Callable,
    max_retries: int = 3,
    base_delay: float = 1,
    max_delay: float = 8,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    *args,
    **kwargs
) -> Any:
    """
    Retry function with exponential backoff

    Only exceptions listed in retry_on are retried; anything else propagates
    from the first attempt.

    Args:
        func: Function to retry
        max_retries: Maximum attempts (including the first)
        base_delay: Base delay in seconds
        max_delay: Max delay cap in seconds
        retry_on: Exception types that trigger another attempt
        *args, **kwargs: Arguments to pass to func

    Returns:
        Function result

    Raises:
        The last retryable exception once all attempts are exhausted
    """
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return func(*args, **kwargs)

        except retry_on as e:
            if attempt == attempts - 1:
                logger.error(f"All {attempts} retry attempts exhausted", error=str(e))
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(f"Attempt {attempt + 1} failed, retrying in {delay}s: {e}")
            time.sleep(delay)
