"""Tests for the retry policy and the with_retry decorator."""
import random

import pytest

from rtx_client.errors import (
    AuthenticationError,
    CommandError,
    CommandTimeout,
    NotFoundError,
    ParseError,
    PrivilegeError,
    RouterBusyError,
    RTXConnectionError,
    SFTPError,
)
from rtx_client.utils.retry import RETRYABLE_EXCEPTIONS, RetryPolicy, with_retry


class TestRetryPolicy:
    """Tests for RetryPolicy delays and decisions."""

    def test_backoff_doubles(self):
        policy = RetryPolicy(base_delay=0.1, max_delay=10.0, jitter=0)
        assert policy.next_delay(0) == pytest.approx(0.1)
        assert policy.next_delay(1) == pytest.approx(0.2)
        assert policy.next_delay(2) == pytest.approx(0.4)

    def test_delays_monotonic_and_capped(self):
        """Delays never decrease and never exceed max_delay."""
        policy = RetryPolicy(base_delay=0.1, max_delay=2.0, jitter=0)
        delays = [policy.next_delay(n) for n in range(12)]
        assert delays == sorted(delays)
        assert max(delays) == pytest.approx(2.0)
        assert all(d <= 2.0 for d in delays)

    def test_jitter_bounded(self):
        """Jitter adds at most the configured fraction, still under the cap."""
        policy = RetryPolicy(base_delay=0.5, max_delay=3.0, jitter=0.2)
        rng = random.Random(42)
        for attempt in range(8):
            base = policy.backoff(attempt)
            delay = policy.next_delay(attempt, rng)
            assert base <= delay <= min(base * 1.2, 3.0) + 1e-9

    def test_huge_attempt_number(self):
        policy = RetryPolicy(base_delay=1, max_delay=5, jitter=0)
        assert policy.next_delay(10_000) == 5

    def test_should_retry_stops_at_max_attempts(self):
        policy = RetryPolicy(max_attempts=3)
        error = RTXConnectionError("reset")
        assert policy.should_retry(1, error)
        assert policy.should_retry(2, error)
        assert not policy.should_retry(3, error)
        assert not policy.should_retry(4, error)

    @pytest.mark.parametrize("error", [
        RTXConnectionError("reset"),
        SFTPError("sftp down"),
        CommandTimeout("no prompt"),
        RouterBusyError("busy"),
        ConnectionResetError(),
        TimeoutError(),
    ])
    def test_transient_errors_retried(self, error):
        assert RetryPolicy(max_attempts=3).should_retry(1, error)

    @pytest.mark.parametrize("error", [
        AuthenticationError("bad password"),
        PrivilegeError("bad admin password"),
        CommandError("Error: Invalid parameter"),
        NotFoundError("no such route"),
        ParseError("bad line", 3, "ip route"),
        ValueError("bug"),
    ])
    def test_fatal_errors_not_retried(self, error):
        assert not RetryPolicy(max_attempts=3).should_retry(1, error)

    def test_retryable_exceptions(self):
        assert ConnectionRefusedError in RETRYABLE_EXCEPTIONS

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"base_delay": -1},
        {"jitter": 1.5},
    ])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class Flaky:
    """Object with a retried method that fails a set number of times."""

    def __init__(self, failures: int, error_type=RTXConnectionError, max_attempts: int = 3):
        self.retry_policy = RetryPolicy(base_delay=0, max_delay=0, max_attempts=max_attempts, jitter=0)
        self.failures = failures
        self.error_type = error_type
        self.calls = 0

    @with_retry()
    async def fetch(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_type(f"failure {self.calls}")
        return value


class TestWithRetry:
    """Tests for the with_retry decorator."""

    @pytest.mark.asyncio
    async def test_success_no_retry(self):
        flaky = Flaky(failures=0)
        assert await flaky.fetch("ok") == "ok"
        assert flaky.calls == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        flaky = Flaky(failures=2)
        assert await flaky.fetch("ok") == "ok"
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """The last error surfaces with the attempt count."""
        flaky = Flaky(failures=10)
        with pytest.raises(RTXConnectionError) as exc_info:
            await flaky.fetch("ok")
        assert flaky.calls == 3
        assert exc_info.value.attempts == 3
        assert "attempts=3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fatal_error_surfaces_immediately(self):
        flaky = Flaky(failures=10, error_type=AuthenticationError)
        with pytest.raises(AuthenticationError) as exc_info:
            await flaky.fetch("ok")
        assert flaky.calls == 1
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        flaky = Flaky(failures=1, max_attempts=1)
        with pytest.raises(RTXConnectionError):
            await flaky.fetch("ok")
        assert flaky.calls == 1
