"""
Browser action primitives.

Each primitive drives the page through Playwright and returns an
ActionResult. Driver failures (Playwright errors, a browser that cannot be
relaunched, a missing viewport) are caught here and reported as
ActionResult.error together with the current URL, so the agent loop can
hand them back to the model instead of crashing.

Coordinates from the model are normalized to 0..1000 on both axes and
mapped to pixels with actual = value / 1000 * viewport_dimension.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from tollgate.errors import BrowserLaunchError
from tollgate.schema import ActionResult

logger = logging.getLogger(__name__)

NORMALIZED_RANGE = 1000
DEFAULT_SCROLL_AMOUNT = 500
SCROLL_DIRECTIONS = ("up", "down", "left", "right")

_COORD = {"type": "integer", "minimum": 0, "maximum": NORMALIZED_RANGE}

BROWSER_ACTION_DECLARATIONS: list[dict[str, Any]] = [
    {
        "name": "open_web_browser",
        "description": "Open the web browser.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "navigate",
        "description": "Navigate to a URL.",
        "parameters": {
            "type": "object",
            "properties": {"url": {"type": "string"}},
            "required": ["url"],
        },
    },
    {
        "name": "click_at",
        "description": "Click at a point given in 0-1000 normalized coordinates.",
        "parameters": {
            "type": "object",
            "properties": {"x": _COORD, "y": _COORD},
            "required": ["x", "y"],
        },
    },
    {
        "name": "type_text_at",
        "description": "Click at a point, then type text.",
        "parameters": {
            "type": "object",
            "properties": {
                "x": _COORD,
                "y": _COORD,
                "text": {"type": "string"},
                "press_enter": {"type": "boolean"},
                "clear_before_typing": {"type": "boolean"},
            },
            "required": ["x", "y", "text"],
        },
    },
    {
        "name": "scroll_document",
        "description": "Scroll the page.",
        "parameters": {
            "type": "object",
            "properties": {
                "direction": {"type": "string", "enum": list(SCROLL_DIRECTIONS)},
                "amount": {"type": "integer", "minimum": 1},
            },
            "required": ["direction"],
        },
    },
    {
        "name": "drag_and_drop",
        "description": "Drag from one point to another (0-1000 normalized coordinates).",
        "parameters": {
            "type": "object",
            "properties": {"x": _COORD, "y": _COORD, "dest_x": _COORD, "dest_y": _COORD},
            "required": ["x", "y", "dest_x", "dest_y"],
        },
    },
    {
        "name": "pagedown",
        "description": "Press PageDown.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "pageup",
        "description": "Press PageUp.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "key_combination",
        "description": "Press a key or combination, e.g. 'Control+C'.",
        "parameters": {
            "type": "object",
            "properties": {"keys": {"type": "string"}},
            "required": ["keys"],
        },
    },
]

ACTION_NAMES = frozenset(d["name"] for d in BROWSER_ACTION_DECLARATIONS)


def to_pixels(value: float, dimension: float) -> float:
    """Map a 0..1000 normalized coordinate onto a viewport dimension."""
    return value / NORMALIZED_RANGE * dimension


@dataclass(frozen=True)
class PageSnapshot:
    """
    Page state captured after an action.

    Attributes:
        screenshot: PNG bytes of the viewport
        tree: ARIA snapshot text of the page body
        url: Page URL at capture time
    """

    screenshot: bytes
    tree: str
    url: str


class BrowserActions:
    """
    The browser primitives the model can call.

    Usage:
        actions = BrowserActions(manager.get_page)
        result = actions.click_at(500, 500)
    """

    def __init__(self, page_provider: Callable[[], Page]) -> None:
        self._page_provider = page_provider

    # ------------------------------------------------------------------ helpers

    def _viewport(self, page: Page) -> dict[str, int] | None:
        viewport = page.viewport_size
        if viewport:
            return viewport
        return page.evaluate("() => ({width: window.innerWidth, height: window.innerHeight})")

    def _run(self, label: str, body: Callable[[Page], ActionResult]) -> ActionResult:
        try:
            page = self._page_provider()
        except BrowserLaunchError as e:
            logger.warning("%s failed: %s", label, e.message)
            return ActionResult.fail(e.message)

        try:
            return body(page)
        except PlaywrightError as e:
            logger.warning("%s failed: %s", label, e)
            return ActionResult.fail(str(e), url=_safe_url(page))

    # --------------------------------------------------------------- primitives

    def open_web_browser(self) -> ActionResult:
        return self._run("open_web_browser", lambda page: ActionResult.ok("Browser opened", page.url))

    def navigate(self, url: str) -> ActionResult:
        def body(page: Page) -> ActionResult:
            page.goto(url)
            return ActionResult.ok(f"Navigated to {url}", page.url)

        return self._run("navigate", body)

    def click_at(self, x: float, y: float) -> ActionResult:
        def body(page: Page) -> ActionResult:
            viewport = self._viewport(page)
            if not viewport:
                return ActionResult.fail("Viewport not available", page.url)
            page.mouse.click(to_pixels(x, viewport["width"]), to_pixels(y, viewport["height"]))
            return ActionResult.ok("Clicked", page.url)

        return self._run("click_at", body)

    def type_text_at(
        self,
        x: float,
        y: float,
        text: str,
        press_enter: bool = False,
        clear_before_typing: bool = False,
    ) -> ActionResult:
        def body(page: Page) -> ActionResult:
            viewport = self._viewport(page)
            if not viewport:
                return ActionResult.fail("Viewport not available", page.url)
            page.mouse.click(to_pixels(x, viewport["width"]), to_pixels(y, viewport["height"]))
            if clear_before_typing:
                page.keyboard.press("Control+A")
                page.keyboard.press("Backspace")
            page.keyboard.type(text)
            if press_enter:
                page.keyboard.press("Enter")
            return ActionResult.ok(f'Typed "{text}"', page.url)

        return self._run("type_text_at", body)

    def scroll_document(self, direction: str, amount: int = DEFAULT_SCROLL_AMOUNT) -> ActionResult:
        def body(page: Page) -> ActionResult:
            delta_x = {"left": -amount, "right": amount}.get(direction, 0)
            delta_y = {"up": -amount, "down": amount}.get(direction, 0)
            page.mouse.wheel(delta_x, delta_y)
            return ActionResult.ok(f"Scrolled {direction} by {amount}", page.url)

        return self._run("scroll_document", body)

    def drag_and_drop(self, x: float, y: float, dest_x: float, dest_y: float) -> ActionResult:
        def body(page: Page) -> ActionResult:
            viewport = self._viewport(page)
            if not viewport:
                return ActionResult.fail("Viewport not available", page.url)
            width, height = viewport["width"], viewport["height"]
            page.mouse.move(to_pixels(x, width), to_pixels(y, height))
            page.mouse.down()
            page.mouse.move(to_pixels(dest_x, width), to_pixels(dest_y, height))
            page.mouse.up()
            return ActionResult.ok(f"Dragged from {x},{y} to {dest_x},{dest_y}", page.url)

        return self._run("drag_and_drop", body)

    def pagedown(self) -> ActionResult:
        return self._press("PageDown")

    def pageup(self) -> ActionResult:
        return self._press("PageUp")

    def key_combination(self, keys: str) -> ActionResult:
        return self._press(keys)

    def _press(self, keys: str) -> ActionResult:
        def body(page: Page) -> ActionResult:
            page.keyboard.press(keys)
            return ActionResult.ok(f"Pressed {keys}", page.url)

        return self._run(f"press {keys}", body)

    # ----------------------------------------------------------------- dispatch

    def dispatch(self, name: str, args: dict[str, Any]) -> ActionResult:
        """
        Run a primitive by name with model-supplied arguments.

        Unknown names and malformed arguments come back as errors.
        """
        errors = validate_action_args(name, args)
        if errors:
            return ActionResult.fail(f"Invalid arguments for {name}: {'; '.join(errors)}")

        if name == "open_web_browser":
            return self.open_web_browser()
        if name == "navigate":
            return self.navigate(args["url"])
        if name == "click_at":
            return self.click_at(args["x"], args["y"])
        if name == "type_text_at":
            return self.type_text_at(
                args["x"],
                args["y"],
                args["text"],
                press_enter=bool(args.get("press_enter", False)),
                clear_before_typing=bool(args.get("clear_before_typing", False)),
            )
        if name == "scroll_document":
            return self.scroll_document(
                args["direction"], int(args.get("amount", DEFAULT_SCROLL_AMOUNT))
            )
        if name == "drag_and_drop":
            return self.drag_and_drop(args["x"], args["y"], args["dest_x"], args["dest_y"])
        if name == "pagedown":
            return self.pagedown()
        if name == "pageup":
            return self.pageup()
        return self.key_combination(args["keys"])

    def capture_snapshot(self) -> PageSnapshot:
        """
        Capture screenshot, ARIA tree and URL of the current page.

        Raises:
            PlaywrightError: If the page cannot be captured
            BrowserLaunchError: If no browser is available
        """
        page = self._page_provider()
        screenshot = page.screenshot(type="png")
        tree = page.locator("body").aria_snapshot()
        return PageSnapshot(screenshot=screenshot, tree=tree, url=page.url)


def _safe_url(page: Page) -> str | None:
    try:
        return page.url
    except PlaywrightError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_action_args(name: str, args: dict[str, Any]) -> list[str]:
    """Check model-supplied arguments for a browser action."""
    if name not in ACTION_NAMES:
        return [f"unknown action '{name}'"]

    errors = []
    coords = {
        "click_at": ("x", "y"),
        "type_text_at": ("x", "y"),
        "drag_and_drop": ("x", "y", "dest_x", "dest_y"),
    }.get(name, ())
    for key in coords:
        if key not in args:
            errors.append(f"'{key}' is required")
        elif not _is_number(args[key]):
            errors.append(f"'{key}' must be a number")
        elif not 0 <= args[key] <= NORMALIZED_RANGE:
            errors.append(f"'{key}' must be between 0 and {NORMALIZED_RANGE}")

    strings = {
        "navigate": ("url",),
        "type_text_at": ("text",),
        "key_combination": ("keys",),
        "scroll_document": ("direction",),
    }.get(name, ())
    for key in strings:
        if not isinstance(args.get(key), str):
            errors.append(f"'{key}' is required and must be a string")

    if name == "scroll_document":
        if isinstance(args.get("direction"), str) and args["direction"] not in SCROLL_DIRECTIONS:
            errors.append(f"'direction' must be one of {', '.join(SCROLL_DIRECTIONS)}")
        if "amount" in args and not _is_number(args["amount"]):
            errors.append("'amount' must be a number")

    return errors
