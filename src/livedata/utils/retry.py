"""
Retry helpers built on tenacity.

The sync loop retries each park with a linear backoff: the wait before
attempt ``n + 1`` is ``base_delay * n``.
"""

import time
from typing import Callable, Optional, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

T = TypeVar('T')

DelayFn = Callable[[int], float]


def linear_delay(base_delay_ms: int) -> DelayFn:
    """
    Delay function for linear backoff.

    Args:
        base_delay_ms: Delay after the first failed attempt, in milliseconds

    Returns:
        Function mapping the number of the attempt that just failed to a
        delay in seconds (1 -> base, 2 -> 2 * base, ...)
    """
    def _delay(attempt_number: int) -> float:
        return (base_delay_ms * attempt_number) / 1000.0
    return _delay


def call_with_retry(
    fn: Callable[[], T],
    max_attempts: int,
    delay_fn: DelayFn,
    is_retryable: Callable[[BaseException], bool] = lambda exc: True,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """
    Call ``fn`` until it succeeds, it raises a non-retryable error, or
    ``max_attempts`` calls have been made.

    Args:
        fn: Zero-argument callable to run
        max_attempts: Total number of calls allowed (>= 1)
        delay_fn: Maps the failed attempt number to a wait in seconds
        is_retryable: Predicate deciding whether an exception is worth retrying
        sleep: Sleep function (injected by tests)
        on_retry: Called as ``on_retry(attempt, exception, delay_seconds)``
            before each wait

    Returns:
        The return value of the first successful call

    Raises:
        The last exception raised by ``fn`` once attempts are exhausted, or
        the first non-retryable exception.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _wait(retry_state: RetryCallState) -> float:
        return delay_fn(retry_state.attempt_number)

    def _before_sleep(retry_state: RetryCallState) -> None:
        if on_retry is not None:
            on_retry(
                retry_state.attempt_number,
                retry_state.outcome.exception(),
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

    retryer = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=_wait,
        retry=retry_if_exception(is_retryable),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=True,
    )
    return retryer(fn)
