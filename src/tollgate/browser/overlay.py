"""
Overlay diagnostics for the browser agent.

Cookie banners, newsletter popups and modal dialogs swallow clicks meant
for the page underneath. After each action the agent loop scans the
structural snapshot for overlay vocabulary; when the same overlay is
present before and after an action, the action most likely never reached
the page, and the model gets a hint to dismiss the overlay first.

Matching is textual and heuristic. Two detections describe the same
overlay iff their signatures (the first three matched patterns) are equal.
"""

import logging
import re

from tollgate.schema import OverlayDetectionResult

logger = logging.getLogger(__name__)

OVERLAY_PATTERNS = (
    # Role-based, HTML attribute form
    re.compile(r'role="dialog"', re.IGNORECASE),
    re.compile(r'role="alertdialog"', re.IGNORECASE),
    re.compile(r'role="tooltip"', re.IGNORECASE),
    re.compile(r'aria-modal="true"', re.IGNORECASE),
    # Role-based, ARIA snapshot form ("- dialog "Cookies":")
    re.compile(r"^\s*-\s*(dialog|alertdialog)\b", re.IGNORECASE | re.MULTILINE),
    # Consent and marketing language
    re.compile(r"cookie\s*(banner|consent|notice|policy)", re.IGNORECASE),
    re.compile(r"accept\s*all\s*cookies", re.IGNORECASE),
    re.compile(r"we\s*use\s*cookies", re.IGNORECASE),
    re.compile(r"privacy\s*settings", re.IGNORECASE),
    re.compile(r"newsletter\s*(sign\s*up|popup)", re.IGNORECASE),
    re.compile(r"subscribe\s*to", re.IGNORECASE),
    re.compile(r"sign\s*up\s*for", re.IGNORECASE),
    # Generic modal vocabulary
    re.compile(r"modal|popup|overlay|lightbox", re.IGNORECASE),
    re.compile(r"close\s*(button|modal|dialog)", re.IGNORECASE),
    re.compile(r"dismiss|got\s*it|no\s*thanks|maybe\s*later", re.IGNORECASE),
)

CLOSE_BUTTON_PATTERNS = (
    re.compile(r"×|✕|✖|⨉|⨯"),
    re.compile(r"\bclose\b", re.IGNORECASE),
    re.compile(r"\bdismiss\b", re.IGNORECASE),
    re.compile(r"\bcancel\b", re.IGNORECASE),
    re.compile(r"\bgot\s*it\b", re.IGNORECASE),
    re.compile(r"\bno\s*thanks\b", re.IGNORECASE),
    re.compile(r"\baccept\b", re.IGNORECASE),
    re.compile(r"\bI\s*agree\b", re.IGNORECASE),
    re.compile(r"\bcontinue\b", re.IGNORECASE),
)

DEFAULT_SUGGESTION = (
    "Look for a close button (×, Close, Dismiss, Got it) and click it to dismiss the overlay."
)


def detect_blocking_overlay(snapshot: str) -> OverlayDetectionResult:
    """Scan a structural snapshot for overlay indicators."""
    found = [p.pattern for p in OVERLAY_PATTERNS if p.search(snapshot)]
    if not found:
        return OverlayDetectionResult(has_overlay=False)

    buttons = []
    for pattern in CLOSE_BUTTON_PATTERNS:
        match = pattern.search(snapshot)
        if match:
            buttons.append(match.group(0))

    signature = f"Detected overlay patterns: {', '.join(found[:3])}"
    if buttons:
        suggestion = (
            f"Found potential close buttons: {', '.join(buttons[:3])}. "
            "Click one to dismiss the overlay."
        )
    else:
        suggestion = DEFAULT_SUGGESTION

    logger.debug("Overlay detected: %s", signature)
    return OverlayDetectionResult(
        has_overlay=True,
        signature=signature,
        suggested_action=suggestion,
    )


def overlay_failure_hint(action_name: str, snapshot: str) -> str | None:
    """Advisory text for the model, or None if no overlay is visible."""
    detection = detect_blocking_overlay(snapshot)
    if not detection.has_overlay:
        return None
    return (
        f"⚠️ Your {action_name} action may have failed due to a blocking overlay.\n"
        f"{detection.signature}\n"
        f"{detection.suggested_action}\n"
        "Please dismiss the overlay before continuing with your task."
    )


def was_blocked_by_overlay(before_snapshot: str, after_snapshot: str) -> bool:
    """True iff the same overlay is detected before and after an action."""
    before = detect_blocking_overlay(before_snapshot)
    after = detect_blocking_overlay(after_snapshot)
    if before.has_overlay and after.has_overlay:
        return before.signature == after.signature
    return False
