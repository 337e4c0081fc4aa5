"""Per-client sliding-window rate limiter for anonymous preview lookups. Metrics-integrated."""

import time
from typing import Optional, Protocol

from content_guard.observability.metrics import MetricsCollector


class RateLimitBackend(Protocol):
    """Backend for rate limit state (e.g. Redis). Injected."""

    async def incr_window(self, key: str, window_seconds: int) -> int: ...


class InMemoryRateLimitBackend:
    """In-memory sliding window: key -> list of timestamps. For tests or single-node."""

    def __init__(self) -> None:
        self._windows: dict[str, list[float]] = {}

    async def incr_window(self, key: str, window_seconds: int) -> int:
        now = time.monotonic()
        cutoff = now - window_seconds
        window = [t for t in self._windows.get(key, []) if t > cutoff]
        window.append(now)
        self._windows[key] = window
        return len(window)


class ClientRateLimiter:
    """
    Limits requests per client key (the caller's IP for preview token lookups),
    so that tokens cannot be guessed by brute force.
    """

    def __init__(
        self,
        backend: RateLimitBackend,
        requests_per_window: int = 60,
        window_seconds: int = 60,
        metrics: Optional[MetricsCollector] = None,
        key_prefix: str = "rate:preview:",
    ) -> None:
        self._backend = backend
        self._limit = requests_per_window
        self._window = window_seconds
        self._metrics = metrics
        self._key_prefix = key_prefix

    @property
    def window_seconds(self) -> int:
        return self._window

    def _key(self, client_key: str) -> str:
        return f"{self._key_prefix}{client_key}"

    async def allow_request(self, client_key: Optional[str]) -> bool:
        """True if under limit. Requests without a client key share one bucket."""
        count = await self._backend.incr_window(self._key(client_key or "unknown"), self._window)
        allowed = count <= self._limit
        if self._metrics is not None and not allowed:
            self._metrics.increment("preview_rate_limited")
        return allowed
