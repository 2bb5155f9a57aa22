"""Cooperative cancellation with optional deadlines.

Remote calls check a :class:`CancellationToken` while waiting for admission,
while sleeping between retries, and when sizing their per-call timeout. A
token never interrupts a running thread; it only bounds the waits around it.
"""

import threading
import time

from datasentinel.domain.types import Clock
from datasentinel.errors import OperationCancelled


class CancellationToken:
    """Thread-safe cancellation signal with an optional deadline.

    Examples:
        >>> token = CancellationToken.with_timeout(30)
        >>> transport.execute(operation, cancel=token)
        >>> # From another thread
        >>> token.cancel()
    """

    def __init__(self, deadline: float | None = None, clock: Clock = time.monotonic) -> None:
        """Initialize a token.

        Args:
            deadline: Absolute time on ``clock`` after which the token counts as cancelled
            clock: Monotonic clock used for the deadline
        """
        self._event = threading.Event()
        self._deadline = deadline
        self._clock = clock

    @classmethod
    def with_timeout(cls, seconds: float, clock: Clock = time.monotonic) -> "CancellationToken":
        """Create a token that expires ``seconds`` from now."""
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Return True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def raise_if_cancelled(self) -> None:
        """Raise :class:`OperationCancelled` if the token fired."""
        if self.is_cancelled():
            raise OperationCancelled("Operation cancelled or deadline exceeded")

    def bound(self, timeout: float) -> float:
        """Clamp ``timeout`` to the remaining deadline."""
        remaining = self.remaining()
        return timeout if remaining is None else min(timeout, remaining)

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early and raising if cancelled."""
        self.raise_if_cancelled()
        self._event.wait(self.bound(seconds))
        self.raise_if_cancelled()
