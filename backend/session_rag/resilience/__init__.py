"""Resilience layer for external provider calls (retry, backoff, rate limiting)."""

from session_rag.resilience.gateway import ProviderGateway
from session_rag.resilience.rate_limiter import SlidingWindowRateLimiter
from session_rag.resilience.retry import RetryOptions, extract_status_code, with_retry

__all__ = [
    "ProviderGateway",
    "RetryOptions",
    "SlidingWindowRateLimiter",
    "extract_status_code",
    "with_retry",
]
