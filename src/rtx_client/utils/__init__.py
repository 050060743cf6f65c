"""Utility modules."""
from .logging_config import sanitize, setup_logging, timed, timed_section
from .retry import RetryPolicy, with_retry

__all__ = [
    "RetryPolicy",
    "sanitize",
    "setup_logging",
    "timed",
    "timed_section",
    "with_retry",
]
