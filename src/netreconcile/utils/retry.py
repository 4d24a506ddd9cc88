"""Named retry policies for object store calls.

Every store call takes one of a small closed set of policies, passed
explicitly at the call site:

    NO_RETRY      - destructive or idempotency-sensitive calls
    SHORT_RETRY   - probes and quick settings that should succeed fast
    MEDIUM_RETRY  - writes expected to eventually succeed

Only TransientError is retried. Anything else is raised on the first attempt.
"""
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Exceptions that are retried when a policy allows it
RETRYABLE_EXCEPTIONS = (TransientError,)


@dataclass(frozen=True)
class RetryPolicy:
    """A named retry configuration.

    Args:
        name: Policy name, used in logs
        max_retries: Retries after the first attempt (0 = single attempt)
        interval: Seconds to wait between attempts
        continue_on_message: If a failure message matches, return None
            instead of raising
    """
    name: str
    max_retries: int = 0
    interval: float = 0
    continue_on_message: Optional[re.Pattern] = None

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def with_continue_on(self, pattern: Union[str, re.Pattern]) -> "RetryPolicy":
        """Derive a copy that treats matching failures as success."""
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        return replace(self, continue_on_message=pattern)

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> Optional[T]:
        """Run an async callable under this policy."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_fixed(self.interval),
                retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await func(*args, **kwargs)
        except Exception as e:
            if self.continue_on_message and self.continue_on_message.search(str(e)):
                logger.debug(f"Continuing past expected failure ({self.name}): {e}")
                return None
            raise
        return None  # pragma: no cover - AsyncRetrying always yields


NO_RETRY = RetryPolicy("no-retry")
SHORT_RETRY = RetryPolicy("short", max_retries=3, interval=0.3)
MEDIUM_RETRY = RetryPolicy("medium", max_retries=30, interval=2)

POLICIES = {
    policy.name: policy
    for policy in (NO_RETRY, SHORT_RETRY, MEDIUM_RETRY)
}
