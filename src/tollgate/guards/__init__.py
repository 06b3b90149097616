"""Safety guards applied before a browser action is dispatched."""

from tollgate.guards.rate_limit import RateLimiter, default_rate_limiter
from tollgate.guards.sensitive import SENSITIVE_ACTIONS, is_sensitive_action
from tollgate.guards.url import (
    BLOCKED_URL_PREFIXES,
    DEFAULT_ALLOWED_PATTERNS,
    UrlGuard,
    is_blocked_url,
)

__all__ = [
    "BLOCKED_URL_PREFIXES",
    "DEFAULT_ALLOWED_PATTERNS",
    "SENSITIVE_ACTIONS",
    "RateLimiter",
    "UrlGuard",
    "default_rate_limiter",
    "is_blocked_url",
    "is_sensitive_action",
]
