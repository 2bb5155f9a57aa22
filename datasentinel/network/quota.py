"""Fixed-window request quota with a concurrency cap.

Every remote call draws one unit from a shared budget and holds one of a
bounded number of concurrency slots while it runs. The budget resets to the
hourly rate once per refill interval regardless of how much was consumed.
All state is mutated under a single :class:`threading.Condition`; admission
is FIFO when resources are equally available.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager

from datasentinel.domain.models import QuotaSnapshot
from datasentinel.domain.types import Clock
from datasentinel.errors import OperationCancelled
from datasentinel.network.cancellation import CancellationToken

logger = logging.getLogger(__name__)

HOUR = 3600.0


class FixedWindowQuota:
    """Shared budget and concurrency state for one remote source.

    Example:
        >>> quota = FixedWindowQuota(hourly_rate=1800, max_concurrent=5)
        >>> with quota.slot():
        ...     response = client.get(url)
    """

    def __init__(
        self,
        hourly_rate: int,
        max_concurrent: int,
        refill_interval: float = HOUR,
        clock: Clock = time.monotonic,
        max_wait: float = 1.0,
    ) -> None:
        """Initialize the quota.

        Args:
            hourly_rate: Budget per window, also the refill ceiling
            max_concurrent: Maximum number of calls admitted at once
            refill_interval: Window length in seconds
            clock: Monotonic clock
            max_wait: Upper bound for one condition wait, so waiters re-check the clock
        """
        if hourly_rate < 1 or max_concurrent < 1:
            raise ValueError("hourly_rate and max_concurrent must be positive")
        self.hourly_rate = hourly_rate
        self.max_concurrent = max_concurrent
        self.refill_interval = refill_interval
        self._clock = clock
        self._max_wait = max_wait

        self._cond = threading.Condition()
        self._remaining = hourly_rate
        self._window_start = clock()
        self._running = 0
        self._queue: deque[object] = deque()

    def _refill(self, now: float) -> bool:
        """Reset the budget if a window boundary passed. Caller holds the lock."""
        elapsed = now - self._window_start
        if elapsed < self.refill_interval:
            return False
        self._window_start += (elapsed // self.refill_interval) * self.refill_interval
        self._remaining = self.hourly_rate
        logger.debug("Quota window refilled to %d", self.hourly_rate)
        return True

    def _admissible(self, ticket: object) -> bool:
        return (
            self._queue[0] is ticket
            and self._running < self.max_concurrent
            and self._remaining > 0
        )

    def _admit(self) -> None:
        self._queue.popleft()
        self._running += 1
        self._remaining -= 1

    def _wait_timeout(self, now: float, cancel: CancellationToken | None) -> float:
        timeout = self._max_wait
        if self._remaining <= 0:
            timeout = min(timeout, max(0.0, self._window_start + self.refill_interval - now))
        if cancel is not None:
            remaining = cancel.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)
        return timeout

    def acquire(self, cancel: CancellationToken | None = None) -> None:
        """Block until a slot and one budget unit are available, then take both.

        Raises:
            OperationCancelled: If ``cancel`` fires while waiting
        """
        ticket = object()
        with self._cond:
            self._queue.append(ticket)
            try:
                while True:
                    now = self._clock()
                    if self._refill(now):
                        self._cond.notify_all()
                    if self._admissible(ticket):
                        self._admit()
                        # The next ticket in line may be admissible too
                        self._cond.notify_all()
                        return
                    if cancel is not None and cancel.is_cancelled():
                        raise OperationCancelled("Cancelled while waiting for quota")
                    self._cond.wait(self._wait_timeout(now, cancel))
            except BaseException:
                if ticket in self._queue:
                    self._queue.remove(ticket)
                    self._cond.notify_all()
                raise

    def release(self) -> None:
        """Return a concurrency slot. Budget is never refunded."""
        with self._cond:
            if self._running <= 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._running -= 1
            self._cond.notify_all()

    @contextmanager
    def slot(self, cancel: CancellationToken | None = None) -> Iterator[None]:
        """Hold a concurrency slot for the duration of the block."""
        self.acquire(cancel)
        try:
            yield
        finally:
            self.release()

    def snapshot(self) -> QuotaSnapshot:
        """Read the current state without mutating it."""
        with self._cond:
            now = self._clock()
            elapsed = now - self._window_start
            if elapsed >= self.refill_interval:
                remaining = self.hourly_rate
                resets_in = self.refill_interval - (elapsed % self.refill_interval)
            else:
                remaining = self._remaining
                resets_in = self.refill_interval - elapsed
            return QuotaSnapshot(
                remaining=remaining,
                hourly_rate=self.hourly_rate,
                running=self._running,
                queued=len(self._queue),
                max_concurrent=self.max_concurrent,
                resets_in=resets_in,
            )
