"""Retry policy with exponential backoff, driven through tenacity."""
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    stop_after_attempt,
)

from ..errors import RTXError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Socket-level failures that escape the transport wrapper are transient too
RETRYABLE_EXCEPTIONS = (
    ConnectionRefusedError,
    ConnectionResetError,
    TimeoutError,
    EOFError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy.

    Attributes:
        base_delay: Delay before the first retry (seconds)
        max_delay: Upper bound for any delay, jitter included (seconds)
        max_attempts: Total attempts, the first one included
        jitter: Fraction of the computed delay added at random (0.1 = up to +10%)
    """
    base_delay: float = 0.1
    max_delay: float = 10.0
    max_attempts: int = 3
    jitter: float = 0.1

    def __post_init__(self):
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")

    def backoff(self, attempt: int) -> float:
        """Deterministic part of the delay: base * 2^attempt, capped."""
        if attempt < 0:
            attempt = 0
        # Avoid float overflow for absurd attempt numbers
        if attempt > 62:
            return self.max_delay
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def next_delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay to wait after failed attempt number ``attempt`` (0-based)."""
        delay = self.backoff(attempt)
        if self.jitter:
            draw = (rng or random).random()
            delay += delay * self.jitter * draw
        return min(delay, self.max_delay)

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """Whether to try again after ``attempt`` attempts ended in ``error``."""
        if attempt >= self.max_attempts:
            return False
        if isinstance(error, RTXError):
            return error.transient
        return isinstance(error, RETRYABLE_EXCEPTIONS)

    def retrying(self, log: Optional[logging.Logger] = None) -> AsyncRetrying:
        """Build a tenacity controller that follows this policy."""

        def _retry(state: RetryCallState) -> bool:
            if state.outcome is None or not state.outcome.failed:
                return False
            return self.should_retry(state.attempt_number, state.outcome.exception())

        def _wait(state: RetryCallState) -> float:
            return self.next_delay(state.attempt_number - 1)

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=_wait,
            retry=_retry,
            before_sleep=before_sleep_log(log or logger, logging.WARNING),
            reraise=True,
        )


def attempts_of(error: BaseException, attempts: int) -> BaseException:
    """Record the attempt count on an engine error before it surfaces."""
    if isinstance(error, RTXError) and not error.attempts:
        error.attempts = attempts
    return error


def with_retry(policy_attr: str = "retry_policy") -> Callable:
    """Decorator for async methods retried under ``self.<policy_attr>``.

    Non-transient errors surface after the first attempt. The final error
    carries the number of attempts made.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(self, *args: Any, **kwargs: Any) -> T:
            policy: RetryPolicy = getattr(self, policy_attr)
            attempt = 0
            try:
                async for attempt_ctx in policy.retrying():
                    with attempt_ctx:
                        attempt = attempt_ctx.retry_state.attempt_number
                        return await func(self, *args, **kwargs)
            except BaseException as e:
                raise attempts_of(e, attempt)
            raise AssertionError("unreachable")  # pragma: no cover

        return wrapper  # type: ignore[return-value]

    return decorator
