import time
import random
import logging
import functools
from typing import Type, Tuple, Callable

logger = logging.getLogger(__name__)


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    jitter: bool = True,
):
    """
    Decorator for exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts, including the first one.
        initial_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        backoff_factor: Multiplier for the delay.
        retry_on: Exception types that trigger a retry. Anything else propagates immediately.
        jitter: Whether to add random jitter to the delay.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    logger.warning(
                        f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {str(e)}"
                    )

                    if attempt == max_attempts:
                        raise

                    current_delay = delay
                    if jitter:
                        current_delay *= (0.5 + random.random())

                    time.sleep(min(current_delay, max_delay))
                    delay *= backoff_factor

        return wrapper

    return decorator
