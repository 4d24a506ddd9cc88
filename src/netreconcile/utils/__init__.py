"""Utility modules for retries and logging."""
from .logging_config import setup_logging, timed, timed_section, perf_logger
from .retry import (
    RetryPolicy,
    NO_RETRY,
    SHORT_RETRY,
    MEDIUM_RETRY,
    POLICIES,
    RETRYABLE_EXCEPTIONS,
)

__all__ = [
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "RetryPolicy",
    "NO_RETRY",
    "SHORT_RETRY",
    "MEDIUM_RETRY",
    "POLICIES",
    "RETRYABLE_EXCEPTIONS",
]
