"""Unit tests for the backoff computation and retry policy."""

import pytest

from datasentinel.errors import NotFoundError, ServerError
from datasentinel.network.retry import compute_backoff, create_retry_policy


class TestComputeBackoff:
    """Test jittered exponential backoff."""

    def test_midpoint_jitter_is_exact_exponential(self):
        """An rng of 0.5 leaves the base delay unchanged."""
        assert compute_backoff(0, base=1.0, cap=30.0, rng=lambda: 0.5) == 1.0
        assert compute_backoff(3, base=1.0, cap=30.0, rng=lambda: 0.5) == 8.0

    def test_jitter_bounds(self):
        """Delay stays within plus or minus a quarter of the base delay."""
        low = compute_backoff(2, base=1.0, cap=30.0, rng=lambda: 0.0)
        high = compute_backoff(2, base=1.0, cap=30.0, rng=lambda: 0.999999)

        assert low == pytest.approx(3.0)
        assert high == pytest.approx(5.0, abs=1e-4)

    def test_clamped_to_cap(self):
        """Large attempts and upward jitter never exceed the cap."""
        assert compute_backoff(10, base=1.0, cap=30.0, rng=lambda: 0.999999) == 30.0
        assert compute_backoff(10, base=1.0, cap=30.0, rng=lambda: 0.0) == pytest.approx(22.5)

    def test_never_negative(self):
        """Zero base yields zero delay."""
        assert compute_backoff(4, base=0.0, cap=30.0, rng=lambda: 0.0) == 0.0


class TestRetryPolicy:
    """Test the Tenacity retry policy."""

    def test_retries_transient_until_success(self):
        """Transient errors are retried and the final result returned."""
        sleeps = []
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ServerError("Server error (HTTP 503).", status_code=503)
            return "ok"

        policy = create_retry_policy(max_attempts=5, sleep=sleeps.append, rng=lambda: 0.5)

        assert policy(flaky) == "ok"
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_reraises_last_transient_error(self):
        """Exhausted retries surface the original error type."""
        calls = []

        def always_down():
            calls.append(1)
            raise ServerError("down", status_code=500)

        policy = create_retry_policy(max_attempts=3, sleep=lambda _s: None)

        with pytest.raises(ServerError):
            policy(always_down)
        assert len(calls) == 3

    def test_non_transient_not_retried(self):
        """Non-transient errors fail on the first attempt."""
        calls = []

        def missing():
            calls.append(1)
            raise NotFoundError("Resource not found.", status_code=404)

        policy = create_retry_policy(max_attempts=5, sleep=lambda _s: None)

        with pytest.raises(NotFoundError):
            policy(missing)
        assert len(calls) == 1

    def test_on_retry_hook(self):
        """Extra hook runs once per backoff sleep."""
        hooks = []

        def always_down():
            raise ServerError("down", status_code=502)

        policy = create_retry_policy(
            max_attempts=4, sleep=lambda _s: None, on_retry=lambda state: hooks.append(state)
        )

        with pytest.raises(ServerError):
            policy(always_down)
        assert len(hooks) == 3
