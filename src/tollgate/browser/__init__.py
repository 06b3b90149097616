"""Browser driving for the agent: lifetime, primitives, indicator, diagnostics, logs."""

from tollgate.browser.actions import (
    BROWSER_ACTION_DECLARATIONS,
    BrowserActions,
    PageSnapshot,
    to_pixels,
)
from tollgate.browser.indicator import ActivityIndicator
from tollgate.browser.manager import BrowserManager
from tollgate.browser.overlay import (
    detect_blocking_overlay,
    overlay_failure_hint,
    was_blocked_by_overlay,
)
from tollgate.browser.session_log import SessionLogger

__all__ = [
    "ActivityIndicator",
    "BROWSER_ACTION_DECLARATIONS",
    "BrowserActions",
    "BrowserManager",
    "PageSnapshot",
    "SessionLogger",
    "detect_blocking_overlay",
    "overlay_failure_hint",
    "to_pixels",
    "was_blocked_by_overlay",
]
