"""Retry policy: jittered, capped exponential backoff via Tenacity.

Only :class:`~datasentinel.errors.TransientRemoteError` is retried. The delay
before retry ``k`` (0 for the first retry) is ``min(base * 2**k, cap)``
scaled by a uniform factor in ``[0.75, 1.25]`` and clamped to ``cap``.

Example:
    >>> policy = create_retry_policy(max_attempts=5)
    >>> payload = policy(fetch_page, timeout)
"""

import logging
import random
import time
from collections.abc import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from datasentinel.errors import TransientRemoteError

logger = logging.getLogger(__name__)

JITTER = 0.25


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    cap: float = 30.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Return the delay in seconds before retry number ``attempt``.

    Args:
        attempt: Zero-based retry index
        base: Delay for the first retry before jitter
        cap: Maximum delay
        rng: Source of uniform floats in [0, 1)
    """
    delay = min(base * (2**attempt), cap)
    jittered = delay * (1 + JITTER * (rng() * 2 - 1))
    return max(0.0, min(jittered, cap))


class JitteredExponentialWait(wait_base):
    """Tenacity wait strategy wrapping :func:`compute_backoff`."""

    def __init__(self, base: float, cap: float, rng: Callable[[], float] = random.random) -> None:
        self.base = base
        self.cap = cap
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        return compute_backoff(retry_state.attempt_number - 1, self.base, self.cap, self.rng)


def create_retry_policy(
    max_attempts: int = 5,
    base: float = 1.0,
    cap: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
    rng: Callable[[], float] = random.random,
    on_retry: Callable[[RetryCallState], None] | None = None,
) -> Retrying:
    """Create the retry policy used for every remote call.

    Args:
        max_attempts: Total attempts including the first one
        base: Backoff base delay in seconds
        cap: Backoff cap in seconds
        sleep: Sleep function; cancellation-aware callers pass the token's sleep
        rng: Jitter source
        on_retry: Extra hook run before each backoff sleep

    Returns:
        Configured Tenacity Retrying object; call it with the function to retry
    """
    log_retry = before_sleep_log(logger, logging.WARNING)

    def before_sleep(retry_state: RetryCallState) -> None:
        log_retry(retry_state)
        if on_retry is not None:
            on_retry(retry_state)

    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=JitteredExponentialWait(base, cap, rng),
        retry=retry_if_exception_type(TransientRemoteError),
        sleep=sleep,
        before_sleep=before_sleep,
        # Surface the last error itself rather than tenacity's RetryError
        reraise=True,
    )
