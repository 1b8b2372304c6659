#!/usr/bin/env python3
"""
Session-local rate limiter.

Token bucket consulted by the job queue in addition to the background
service's daily/hourly check: `capacity` actions may burst, and tokens refill
continuously at capacity / window.
"""

import logging
import math
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket throttle.

    Usage:
        limiter = RateLimiter(capacity=30, window_seconds=3600)
        if limiter.can_perform_action():
            limiter.record_action()
        else:
            await asyncio.sleep(limiter.time_until_next_action())
    """

    def __init__(
        self,
        capacity: int = 30,
        window_seconds: float = 3600.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.refill_rate = capacity / window_seconds  # tokens per second
        self._clock = clock or time.monotonic
        self._tokens = float(capacity)
        self._last_refill = self._clock()
        self.total_actions = 0

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], float]] = None) -> "RateLimiter":
        return cls(capacity=max(1, settings.hourly_limit), window_seconds=3600.0, clock=clock)

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def can_perform_action(self) -> bool:
        self._refill()
        return self._tokens >= 1.0

    def record_action(self):
        """Consume one token. Recording past empty is allowed and goes into debt."""
        self._refill()
        self._tokens -= 1.0
        self.total_actions += 1
        if self._tokens < 0:
            logger.warning(f"[RateLimiter] Action recorded while throttled ({self._tokens:.2f} tokens)")

    def time_until_next_action(self) -> float:
        """Seconds until a token is available (0 when one is available now)."""
        self._refill()
        if self._tokens >= 1.0:
            return 0.0
        return (1.0 - self._tokens) / self.refill_rate

    def remaining_actions(self) -> int:
        self._refill()
        return max(0, math.floor(self._tokens))

    def reset(self):
        self._tokens = float(self.capacity)
        self._last_refill = self._clock()

    def get_stats(self) -> Dict:
        return {
            "capacity": self.capacity,
            "window_seconds": self.window_seconds,
            "remaining": self.remaining_actions(),
            "total_actions": self.total_actions,
            "seconds_until_next": round(self.time_until_next_action(), 2),
        }
