"""
URL filtering for the browser agent.

Two checks, in order:

1. Block check: a fixed deny-list of URL prefixes (local files, script
   URIs, browser-internal pages). Always applied, regardless of allow
   configuration.
2. Allow check: with no user patterns every non-blocked URL is accepted.
   Once the user configures any pattern, only URLs matching the built-in
   defaults or a user pattern are accepted.

Pattern syntax: literal text where `*` matches any characters. Matching is
case-insensitive and prefix-anchored, so `https://*.test.org` accepts
`https://sub.test.org/path`.
"""

import logging
import re
from functools import lru_cache

logger = logging.getLogger(__name__)

BLOCKED_URL_PREFIXES = (
    "file://",
    "javascript:",
    "data:text/html",
    "chrome://extensions",
    "chrome://settings/passwords",
)

DEFAULT_ALLOWED_PATTERNS = (
    "https://*.google.com",
    "https://www.google.com",
    "https://*.github.com",
    "https://github.com",
    "about:blank",
    "chrome://newtab",
)


@lru_cache(maxsize=256)
def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a wildcard URL pattern to a case-insensitive prefix regex."""
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile("^" + body, re.IGNORECASE)


def is_blocked_url(url: str) -> bool:
    lowered = url.lower()
    return any(lowered.startswith(prefix) for prefix in BLOCKED_URL_PREFIXES)


class UrlGuard:
    """
    Classifies navigation targets as allowed or blocked.

    Attributes:
        allowed_patterns: User-configured patterns (empty = open by default)
    """

    def __init__(self, allowed_patterns: list[str] | tuple[str, ...] | None = None) -> None:
        self.allowed_patterns = tuple(allowed_patterns or ())

    @property
    def effective_patterns(self) -> tuple[str, ...]:
        """Patterns checked by the allow step (empty when unrestricted)."""
        if not self.allowed_patterns:
            return ()
        return DEFAULT_ALLOWED_PATTERNS + self.allowed_patterns

    def is_allowed(self, url: str) -> bool:
        if is_blocked_url(url):
            logger.info("URL blocked by security pattern: %s", url)
            return False

        if not self.allowed_patterns:
            return True

        patterns = self.effective_patterns
        if any(pattern_to_regex(p).match(url) for p in patterns):
            return True

        logger.info(
            "URL not in allowed list: %s. Allowed patterns: %s",
            url,
            ", ".join(patterns),
        )
        return False

    def navigation_restrictions_message(self) -> str:
        """Text appended to the model's system prompt; empty when unrestricted."""
        if not self.allowed_patterns:
            return ""
        lines = "\n".join(f"- {p}" for p in self.allowed_patterns)
        return (
            "\nNAVIGATION RESTRICTIONS:\n"
            "You may only navigate to URLs matching these patterns:\n"
            f"{lines}\n"
            "Attempts to navigate elsewhere will be blocked."
        )
