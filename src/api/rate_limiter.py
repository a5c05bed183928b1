"""Request rate limiting for the screening API.

Token buckets per client: a fast bucket for per-minute bursts and a slow
bucket for the daily quota. Both are in-memory (Tier 1). For Tier 2
(distributed), swap to a Redis-backed implementation with the same
``check`` interface.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Token Bucket
# ---------------------------------------------------------------------------


@dataclass
class _TokenBucket:
    """Token bucket for rate limiting a single client."""

    capacity: float
    refill_rate: float  # tokens per second
    clock: Callable[[], float] = time.monotonic
    tokens: float = 0.0
    last_refill: float = 0.0

    def __post_init__(self) -> None:
        self.tokens = self.capacity
        self.last_refill = self.clock()

    def consume(self) -> bool:
        """Try to consume one token. Returns True if allowed."""
        now = self.clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def refund(self) -> None:
        self.tokens = min(self.capacity, self.tokens + 1.0)

    @property
    def retry_after(self) -> float:
        """Seconds until the next token is available."""
        if self.tokens >= 1.0:
            return 0.0
        return (1.0 - self.tokens) / self.refill_rate


# ---------------------------------------------------------------------------
# Rate Limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Per-client submission rate limiting using the token bucket algorithm.

    Each client gets independent buckets, created lazily on first request.

    Args:
        requests_per_minute: Burst capacity per client, refilled over a minute.
        requests_per_day: Daily quota per client.
        clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        requests_per_day: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rpm = requests_per_minute
        self._daily = requests_per_day
        self._clock = clock
        # Fast bucket: per-minute burst control
        self._minute_buckets: dict[str, _TokenBucket] = {}
        # Slow bucket: daily quota
        self._daily_buckets: dict[str, _TokenBucket] = {}

    def check(self, client_id: str) -> tuple[bool, float]:
        """Check if a request is allowed for this client.

        Returns:
            (allowed, retry_after_seconds)
        """
        if client_id not in self._minute_buckets:
            self._minute_buckets[client_id] = _TokenBucket(
                capacity=float(self._rpm),
                refill_rate=self._rpm / 60.0,
                clock=self._clock,
            )
        minute_bucket = self._minute_buckets[client_id]

        if client_id not in self._daily_buckets:
            self._daily_buckets[client_id] = _TokenBucket(
                capacity=float(self._daily),
                refill_rate=self._daily / 86400.0,
                clock=self._clock,
            )
        daily_bucket = self._daily_buckets[client_id]

        if not daily_bucket.consume():
            logger.warning("rate_limit_daily_exceeded", client_id=client_id)
            return False, daily_bucket.retry_after

        if not minute_bucket.consume():
            # Refund the daily token since the request is rejected
            daily_bucket.refund()
            logger.warning("rate_limit_minute_exceeded", client_id=client_id)
            return False, minute_bucket.retry_after

        return True, 0.0
