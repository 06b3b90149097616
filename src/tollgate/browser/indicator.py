"""
In-page activity indicator for headed browser sessions.

While the agent drives a visible browser, a glowing border marks the page as
under automated control and a small toast shows the action in progress. Both
are injected with page.evaluate, ignore pointer events and are hidden from
the accessibility tree, so they never reach the model's observations.

Drawing is best effort: a closed page or a browser that went away is
logged and otherwise ignored.
"""

import logging
from collections.abc import Callable

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from tollgate.errors import BrowserLaunchError

logger = logging.getLogger(__name__)

TOAST_ID = "tollgate-activity"
BORDER_ID = "tollgate-border"
BORDER_STYLE_ID = "tollgate-border-style"

SHOW_TOAST_SCRIPT = """(message) => {
  let toast = document.getElementById('%(toast)s');
  if (!toast) {
    toast = document.createElement('div');
    toast.id = '%(toast)s';
    toast.setAttribute('aria-hidden', 'true');
    Object.assign(toast.style, {
      position: 'fixed',
      bottom: '50px',
      left: '50%%',
      transform: 'translateX(-50%%)',
      background: 'rgba(32, 33, 36, 0.9)',
      color: 'white',
      padding: '12px 24px',
      borderRadius: '24px',
      fontSize: '16px',
      fontFamily: 'sans-serif',
      zIndex: '2147483647',
      pointerEvents: 'none',
    });
    document.body.appendChild(toast);
  }
  toast.innerText = message;
}""" % {"toast": TOAST_ID}

BORDER_SCRIPT = """({active, capturing}) => {
  if (!document.getElementById('%(style)s')) {
    const style = document.createElement('style');
    style.id = '%(style)s';
    style.textContent = `
      #%(border)s {
        pointer-events: none;
        z-index: 2147483647;
        position: fixed;
        inset: 0;
        border: 2px solid rgb(0, 102, 255);
        box-shadow: inset 0 0 10px 0 rgba(0, 102, 255, 0.9);
        box-sizing: border-box;
        transition: opacity 300ms ease-in-out;
      }
      #%(border)s.hidden { opacity: 0; }
      @keyframes tollgate-breathe {
        0%%, 100%% { box-shadow: inset 0 0 20px 0 rgba(0, 102, 255, 0.9); }
        50%% { box-shadow: inset 0 0 30px 10px rgba(0, 102, 255, 0.9); }
      }
      #%(border)s.breathing { animation: tollgate-breathe 3s ease-in-out infinite; }
    `;
    document.head.appendChild(style);
  }
  let border = document.getElementById('%(border)s');
  if (!border) {
    border = document.createElement('div');
    border.id = '%(border)s';
    border.setAttribute('aria-hidden', 'true');
    document.body.appendChild(border);
  }
  border.classList.toggle('hidden', !active);
  border.classList.toggle('breathing', active && !capturing);
}""" % {"style": BORDER_STYLE_ID, "border": BORDER_ID}

REMOVE_SCRIPT = """() => {
  for (const id of ['%s', '%s', '%s']) {
    const element = document.getElementById(id);
    if (element) element.remove();
  }
}""" % (TOAST_ID, BORDER_ID, BORDER_STYLE_ID)


class ActivityIndicator:
    """
    Draws the activity border and toast on the agent's page.

    Usage:
        indicator = ActivityIndicator(manager.get_page)
        indicator.set_border(active=True)
        indicator.show("Clicking at 500, 500")
        indicator.remove()
    """

    def __init__(self, page_provider: Callable[[], Page]) -> None:
        self._page_provider = page_provider
        self._page: Page | None = None

    def show(self, message: str) -> None:
        """Show or update the toast text."""
        self._evaluate(SHOW_TOAST_SCRIPT, message)

    def set_border(self, active: bool, capturing: bool = False) -> None:
        """Show the border (pulsing unless a capture is running) or hide it."""
        self._evaluate(BORDER_SCRIPT, {"active": active, "capturing": capturing})

    def remove(self) -> None:
        """Remove every indicator element from the last page drawn on."""
        page = self._page
        self._page = None
        if page is None or page.is_closed():
            return
        try:
            page.evaluate(REMOVE_SCRIPT)
        except PlaywrightError as e:
            logger.debug("Could not remove activity indicator: %s", e)

    def _evaluate(self, script: str, arg: object) -> None:
        try:
            page = self._page_provider()
            page.evaluate(script, arg)
        except (PlaywrightError, BrowserLaunchError) as e:
            logger.debug("Could not draw activity indicator: %s", e)
            return
        self._page = page
