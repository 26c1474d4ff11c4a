"""Bounded retry with backoff."""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..errors import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(unit_s: float) -> Callable[[int], float]:
    """Delay function where failed attempt n waits n * unit_s."""
    return lambda attempt: attempt * unit_s


def retry_with_backoff(
    operation: Callable[[], T],
    attempts: int,
    delay: Callable[[int], float],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    label: str = "operation",
) -> T:
    """Call operation until it succeeds or attempts are exhausted.

    After failed attempt n (n < attempts) waits delay(n) seconds. No wait
    follows the final attempt. Exceptions outside retry_on propagate at once.

    Args:
        operation: Zero-argument callable
        attempts: Total number of attempts (>= 1)
        delay: Maps the 1-based failed attempt number to seconds to wait
        retry_on: Exception types that trigger a retry
        sleep: Sleep function (injected in tests)
        on_retry: Called with (attempt, error) before waiting; use it to
                  release partially acquired resources
        label: Name used in log lines

    Returns:
        Result of the first successful call

    Raises:
        RetryExhausted: If every attempt failed; chained to the last error
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as e:
            last_error = e
            if on_retry is not None:
                on_retry(attempt, e)

            if attempt >= attempts:
                logger.error(f"{label} failed after {attempt} attempts: {e}")
                break

            sleep_s = delay(attempt)
            logger.warning(
                f"{label} failed, retry {attempt}/{attempts} after {sleep_s:.1f}s: {e}"
            )
            sleep(sleep_s)

    raise RetryExhausted(attempts, last_error) from last_error
