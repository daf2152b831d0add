"""Single entry point through which every provider call is made.

Combines the shared rate limiter, the retry policy and metrics so that
embedding, summary and transcription clients all get the same treatment.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from session_rag.core.errors import RateLimitExceededError
from session_rag.observability import MetricsBackend
from session_rag.resilience.rate_limiter import SlidingWindowRateLimiter
from session_rag.resilience.retry import RetryOptions, extract_status_code, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderGateway:
    """Rate-limited, retried execution of provider calls.

    The limiter is advisory: when ``wait_on_rate_limit`` is set the gateway
    heeds a rejection by sleeping for the reported wait and checking again;
    otherwise the ``RateLimitExceededError`` propagates to the caller.
    """

    def __init__(
        self,
        provider: str,
        rate_limiter: SlidingWindowRateLimiter,
        retry_options: RetryOptions | None = None,
        metrics: Optional[MetricsBackend] = None,
        wait_on_rate_limit: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.retry_options = retry_options or RetryOptions()
        self.metrics = metrics
        self.wait_on_rate_limit = wait_on_rate_limit
        self._sleep = sleep

    async def call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Execute ``fn`` under the rate limiter and retry policy.

        Args:
            operation: Operation name for logs and metrics (e.g. "embeddings").
            fn: Zero-argument coroutine factory performing one provider request.
        """

        async def attempt() -> T:
            await self._acquire(operation)
            start = time.perf_counter()
            status_code = 500
            try:
                result = await fn()
                status_code = 200
                return result
            except Exception as exc:
                status_code = extract_status_code(exc) or 500
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                if self.metrics:
                    self.metrics.observe_external_api(
                        self.provider, operation, status_code, duration_ms
                    )
                logger.info(
                    "%s API %s status=%s duration_ms=%.2f",
                    self.provider,
                    operation,
                    status_code,
                    duration_ms,
                )

        def record_retry(attempt_index: int, status_code: Optional[int], delay: float) -> None:
            if self.metrics:
                self.metrics.observe_provider_retry(self.provider, operation, status_code)

        return await with_retry(
            attempt,
            self.retry_options,
            description=f"{self.provider} {operation}",
            sleep=self._sleep,
            on_retry=record_retry,
        )

    async def _acquire(self, operation: str) -> None:
        while True:
            try:
                self.rate_limiter.check()
                return
            except RateLimitExceededError as exc:
                if not self.wait_on_rate_limit:
                    raise
                logger.warning(
                    "%s %s throttled locally, waiting %.2fs",
                    self.provider,
                    operation,
                    exc.retry_after,
                )
                await self._sleep(max(exc.retry_after, 0.0))
