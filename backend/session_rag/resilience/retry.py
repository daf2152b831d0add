"""Retry with exponential backoff and jitter for provider calls."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rate limit and transient server errors
DEFAULT_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

# Upper bound of the random jitter, as a fraction of the computed delay
JITTER_FRACTION = 0.3


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_statuses: frozenset[int] = field(default=DEFAULT_RETRYABLE_STATUSES)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retrying after the zero-based ``attempt``, without jitter."""
        return min(self.initial_delay * self.backoff_multiplier**attempt, self.max_delay)


def extract_status_code(error: BaseException) -> Optional[int]:
    """Find an HTTP status on an exception, if any.

    Looks at ``status_code``, ``status`` and ``response.status_code`` in
    that order, which covers the OpenAI SDK, httpx and our ProviderError.
    """
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value

    return None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    *,
    description: str = "provider call",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, Optional[int], float], None] | None = None,
) -> T:
    """Run ``operation``, retrying transient failures.

    Fails fast on the last attempt and on any error without a retryable
    status code, so validation and auth failures are never retried.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        options: Retry policy (defaults to RetryOptions()).
        description: Label used in log messages.
        sleep: Awaitable sleep, injectable for tests.
        on_retry: Called with (attempt, status_code, delay) before each retry.

    Returns:
        The operation's result.

    Raises:
        Whatever the final attempt raised.
    """
    options = options or RetryOptions()
    total_attempts = options.max_retries + 1

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as exc:
            status_code = extract_status_code(exc)
            is_retryable = status_code is not None and status_code in options.retryable_statuses

            if attempt == options.max_retries or not is_retryable:
                raise

            delay = options.delay_for(attempt)
            delay += random.uniform(0, JITTER_FRACTION * delay)

            logger.warning(
                "%s failed (attempt %d/%d, status=%s), retrying in %.0fms: %s",
                description,
                attempt + 1,
                total_attempts,
                status_code,
                delay * 1000,
                exc,
            )
            if on_retry is not None:
                on_retry(attempt, status_code, delay)

            await sleep(delay)

    # Unreachable: the final attempt either returns or raises
    raise RuntimeError(f"{description}: retry loop exited without a result")
