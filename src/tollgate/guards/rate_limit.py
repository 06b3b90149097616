"""
Sliding-window rate limiting for browser activity.

Two independent 60 second windows: one for every action and one for
navigations. A record call prunes expired timestamps, rejects without
recording when the window is full, and otherwise records the call. There
is no smoothing; the cutoff is hard.

The process-wide default_rate_limiter is shared by every task, so
concurrent tasks count against the same ceilings.
"""

import logging
import threading
import time
from collections.abc import Callable

from tollgate.schema import RateLimits

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Action and navigation rate limiter.

    Usage:
        limiter = RateLimiter(RateLimits(max_actions_per_minute=30))
        if not limiter.record_action():
            # over the limit, do not dispatch
    """

    def __init__(
        self,
        limits: RateLimits | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limits = limits or RateLimits()
        self._clock = clock
        self._actions: list[float] = []
        self._navigations: list[float] = []
        self._lock = threading.Lock()

    def _record(self, window: list[float], limit: int, category: str) -> bool:
        with self._lock:
            now = self._clock()
            cutoff = now - WINDOW_SECONDS
            window[:] = [t for t in window if t > cutoff]
            if len(window) >= limit:
                logger.warning("Rate limit exceeded for %s (%d per minute)", category, limit)
                return False
            window.append(now)
            return True

    def record_action(self) -> bool:
        """Record one action. Returns False if rate limited."""
        return self._record(self._actions, self.limits.max_actions_per_minute, "actions")

    def record_navigation(self) -> bool:
        """Record one navigation. Returns False if rate limited."""
        return self._record(
            self._navigations, self.limits.max_navigations_per_minute, "navigations"
        )

    def configure(self, limits: RateLimits) -> None:
        """Replace the ceilings; recorded timestamps are kept."""
        with self._lock:
            self.limits = limits

    def reset(self) -> None:
        with self._lock:
            self._actions.clear()
            self._navigations.clear()

    def __repr__(self) -> str:
        return (
            f"<RateLimiter: actions={len(self._actions)}/{self.limits.max_actions_per_minute} "
            f"navigations={len(self._navigations)}/{self.limits.max_navigations_per_minute}>"
        )


# Process-wide limiter shared across tasks
default_rate_limiter = RateLimiter()
