"""Scalability layer: retry with backoff, rate limiting. No FastAPI."""

from content_guard.scalability.rate_limiter import (
    ClientRateLimiter,
    InMemoryRateLimitBackend,
    RateLimitBackend,
)
from content_guard.scalability.retry import retry_with_backoff

__all__ = [
    "ClientRateLimiter",
    "InMemoryRateLimitBackend",
    "RateLimitBackend",
    "retry_with_backoff",
]
