"""Retryable operation: an awaitable factory, a bounded attempt count and a
backoff policy, returning either the operation's result or a Failure.

HTTP 429 waits a fixed delay (providers reset their windows on the minute);
every other error waits linearly longer on each attempt.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pulsefeed.config import RetrySettings
from pulsefeed.exceptions import RateLimitedError, RequestError
from pulsefeed.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry one request."""

    max_attempts: int = 3
    rate_limit_delay: float = 60.0
    backoff_step: float = 2.0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            rate_limit_delay=settings.rate_limit_delay,
            backoff_step=settings.backoff_step,
        )

    def delay_for(self, error: RequestError, attempt: int) -> float:
        """Seconds to wait after the given 1-based attempt failed."""
        if isinstance(error, RateLimitedError):
            return self.rate_limit_delay
        return self.backoff_step * attempt


@dataclass(frozen=True)
class Failure:
    """Terminal outcome of a request whose retry budget is exhausted."""

    reason: str
    status: int | None = None
    attempts: int = 0
    target: str = ""


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    target: str = "",
) -> T | Failure:
    """Await ``operation()`` until it succeeds or the policy gives up.

    Only RequestError subclasses are retried; anything else is a bug and
    propagates.
    """
    last_error: RequestError | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except RequestError as exc:
            last_error = exc
            if attempt == policy.max_attempts:
                break
            delay = policy.delay_for(exc, attempt)
            if isinstance(exc, RateLimitedError):
                logger.warning(
                    "rate_limited",
                    target=target,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                )
            else:
                logger.warning(
                    "request_retry",
                    target=target,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error=exc.reason,
                )
            await asyncio.sleep(delay)

    assert last_error is not None
    logger.error(
        "request_failed_permanently",
        target=target,
        attempts=policy.max_attempts,
        error=last_error.reason,
        status=last_error.status,
    )
    return Failure(
        reason=last_error.reason,
        status=last_error.status,
        attempts=policy.max_attempts,
        target=target,
    )
