"""
Browser agent loop for Tollgate.

This module implements the turn-bounded loop that lets a model operate a
browser. The page is captured once before the first turn, so the model
starts from what is on screen. Each turn then follows an
ask -> guard -> act -> observe cycle:

1. Check the abort signal
2. Ask the model for the next step (text means the task is done)
3. Guard the requested action: rate limits, URL filter for navigations,
   sensitive-action flag (with an optional policy confirmation)
4. Check the abort signal again, then dispatch to the browser
5. Capture a new snapshot and look for an overlay that swallowed the action
6. Feed the result, the snapshot and any advisory back to the model

Only the newest snapshot is sent in full. Earlier ones keep their URL line
and lose the screenshot and accessibility tree.

With an ActivityIndicator attached, the page shows a border while the loop
runs and a toast naming the current action. Both are removed on exit.

Design Principles:
    - Model output is untrusted - every action passes the guards
    - Driver failures are results, not crashes - the model can retry
    - Progress is never silently dropped - a run that hits the turn cap
      returns TRUNCATED with the best partial output

Status transitions:
    RUNNING -> COMPLETED   model replied with text only
    RUNNING -> CANCELLED   abort signal set before a model call or dispatch
    RUNNING -> TRUNCATED   turn cap reached
    RUNNING -> FAILED      model client or snapshot capture raised
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from tollgate.browser.actions import BROWSER_ACTION_DECLARATIONS, BrowserActions, PageSnapshot
from tollgate.browser.indicator import ActivityIndicator
from tollgate.browser.overlay import overlay_failure_hint, was_blocked_by_overlay
from tollgate.browser.session_log import SessionLogger
from tollgate.confirmation import ConfirmationMediator, ConfirmationRequest, is_aborted
from tollgate.errors import PolicyDeniedError
from tollgate.guards.rate_limit import RateLimiter, default_rate_limiter
from tollgate.guards.sensitive import is_sensitive_action
from tollgate.guards.url import UrlGuard
from tollgate.model.base import FunctionCall, Message, ModelClient
from tollgate.policy.engine import PolicyStore
from tollgate.schema import ActionResult, ApprovalMode, BrowserSettings, ConfirmationOutcome

logger = logging.getLogger(__name__)

MAX_TURNS = 20

DEFAULT_SYSTEM_PROMPT = """You are a browser agent that completes tasks by operating a web browser.

After every action you receive a screenshot and the accessibility tree of the page.
All coordinates are normalized: x and y range from 0 to 1000 across the viewport.
Call exactly one function per turn.
When the task is complete, reply with a short plain-text answer and no function call."""

TREE_MARKER = "\nAccessibility tree:\n"
SUPERSEDED_NOTE = "[Screenshot and accessibility tree superseded by a later snapshot]"

ProgressCallback = Callable[[str], None]
ConfirmCallback = Callable[[ConfirmationRequest], ConfirmationOutcome]


class LoopStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TRUNCATED = "truncated"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """
    Configuration for the browser agent loop.

    Attributes:
        max_turns: Turn cap per task
        allowed_domains: URL patterns for the URL guard (empty = unrestricted)
        system_prompt: Override for the default system prompt
    """

    max_turns: int = MAX_TURNS
    allowed_domains: list[str] = field(default_factory=list)
    system_prompt: str | None = None

    @classmethod
    def from_settings(cls, settings: BrowserSettings) -> "AgentConfig":
        return cls(
            max_turns=settings.max_turns,
            allowed_domains=list(settings.allowed_domains),
        )


@dataclass
class AgentTurn:
    """
    One iteration of the loop that dispatched (or tried to dispatch) an action.

    Attributes:
        index: Turn number (0-indexed)
        requested_action: The function call the model asked for
        action_result: What the browser (or a guard) returned
        snapshot: Page state captured after the action, if any
        sensitive: The action name looked sensitive
        advisory: Overlay hint fed back to the model, if any
    """

    index: int
    requested_action: FunctionCall
    action_result: ActionResult
    snapshot: PageSnapshot | None = None
    sensitive: bool = False
    advisory: str | None = None


@dataclass
class AgentResult:
    """
    Final result of a browser task.

    Attributes:
        task: The original task description
        status: Final LoopStatus
        turns: Every dispatched turn in order
        output: Final answer, or the best partial output when truncated
        truncated: True iff the turn cap was hit
        error_message: Error text when status is FAILED
        total_duration_seconds: Wall time of the run
    """

    task: str
    status: LoopStatus = LoopStatus.RUNNING
    turns: list[AgentTurn] = field(default_factory=list)
    output: str | None = None
    truncated: bool = False
    error_message: str | None = None
    total_duration_seconds: float = 0.0


def describe_action(call: FunctionCall) -> str:
    """Human-readable description of an action, for progress output."""
    a = call.args
    descriptions = {
        "open_web_browser": lambda: "Opening browser",
        "navigate": lambda: f"Navigating to {a.get('url')}",
        "click_at": lambda: f"Clicking at {a.get('x')}, {a.get('y')}",
        "type_text_at": lambda: f'Typing "{a.get("text")}" at {a.get("x")}, {a.get("y")}',
        "scroll_document": lambda: f"Scrolling {a.get('direction')}",
        "drag_and_drop": lambda: (
            f"Dragging from {a.get('x')},{a.get('y')} to {a.get('dest_x')},{a.get('dest_y')}"
        ),
        "pagedown": lambda: "Pressing PageDown",
        "pageup": lambda: "Pressing PageUp",
        "key_combination": lambda: f"Pressing {a.get('keys')}",
    }
    describe = descriptions.get(call.name)
    return describe() if describe else f"Running {call.name}"


class BrowserAgentLoop:
    """
    Turn-bounded loop driving the browser on behalf of a model.

    Usage:
        with BrowserManager(headless=True) as manager:
            loop = BrowserAgentLoop(client, BrowserActions(manager.get_page))
            result = loop.run("Find the latest release on github.com/psf/requests")

    Attributes:
        model: The model client that proposes actions
        actions: Browser primitives to dispatch to
        config: Loop configuration
        rate_limiter: Shared action/navigation limiter
        url_guard: Navigation filter
        policy_store: When set, sensitive actions are evaluated against it
        confirm: Callback answering confirmation requests for sensitive actions
        session_logger: Optional per-turn log writer
        indicator: Optional in-page activity border and toast
    """

    def __init__(
        self,
        model: ModelClient,
        actions: BrowserActions,
        config: AgentConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        url_guard: UrlGuard | None = None,
        policy_store: PolicyStore | None = None,
        mode_provider: Callable[[], ApprovalMode] | None = None,
        confirm: ConfirmCallback | None = None,
        session_logger: SessionLogger | None = None,
        indicator: ActivityIndicator | None = None,
    ):
        self.model = model
        self.actions = actions
        self.config = config or AgentConfig()
        self.rate_limiter = rate_limiter or default_rate_limiter
        self.url_guard = url_guard or UrlGuard(self.config.allowed_domains)
        self.policy_store = policy_store
        self.mode_provider = mode_provider or (lambda: ApprovalMode.DEFAULT)
        self.confirm = confirm
        self.session_logger = session_logger
        self.indicator = indicator

    def system_prompt(self) -> str:
        prompt = self.config.system_prompt or DEFAULT_SYSTEM_PROMPT
        return prompt + self.url_guard.navigation_restrictions_message()

    def run(
        self,
        task: str,
        abort_signal: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AgentResult:
        """
        Execute a browser task.

        Args:
            task: Natural-language task for the model
            abort_signal: Set it to cancel before the next model call or dispatch
            on_progress: Receives a description of each action and its result

        Returns:
            AgentResult with the final status and every turn
        """
        start_time = time.time()
        result = AgentResult(task=task)
        messages = [Message(role="system", content=self.system_prompt())]
        previous_tree: str | None = None
        last_text: str | None = None
        progress = on_progress or (lambda _message: None)

        try:
            if not is_aborted(abort_signal):
                opening = self._capture()
                previous_tree = opening.tree
                messages.append(self._snapshot_message(opening, lead=f"Task: {task}\n\n"))

            for index in range(self.config.max_turns):
                if is_aborted(abort_signal):
                    result.status = LoopStatus.CANCELLED
                    break

                response = self.model.generate(messages, BROWSER_ACTION_DECLARATIONS)
                self._log_turn(messages, response)

                call = response.function_call
                if call is None:
                    result.status = LoopStatus.COMPLETED
                    result.output = response.text
                    break

                if response.text:
                    last_text = response.text
                messages.append(
                    Message(role="assistant", content=response.text or "", function_call=call)
                )

                progress(describe_action(call))
                sensitive = is_sensitive_action(call.name)
                blocked = self._guard(call, sensitive, abort_signal)

                if is_aborted(abort_signal):
                    result.status = LoopStatus.CANCELLED
                    break

                snapshot: PageSnapshot | None = None
                advisory: str | None = None
                if blocked is not None:
                    action_result = blocked
                else:
                    if self.indicator is not None:
                        self.indicator.show(describe_action(call))
                    action_result = self.actions.dispatch(call.name, call.args)
                    snapshot = self._capture()
                    advisory = self._diagnose(call.name, action_result, previous_tree, snapshot)
                    previous_tree = snapshot.tree

                progress(action_result.output or f"Error: {action_result.error}")

                turn = AgentTurn(
                    index=index,
                    requested_action=call,
                    action_result=action_result,
                    snapshot=snapshot,
                    sensitive=sensitive,
                    advisory=advisory,
                )
                result.turns.append(turn)
                self._observe(messages, turn)

            else:
                result.status = LoopStatus.TRUNCATED
                result.truncated = True
                result.output = last_text or self._last_output(result)
                logger.warning("Browser task hit the %d turn cap", self.config.max_turns)

        except Exception as e:
            logger.exception("Browser task failed")
            result.status = LoopStatus.FAILED
            result.error_message = str(e)
        finally:
            if self.indicator is not None:
                self.indicator.remove()

        result.total_duration_seconds = time.time() - start_time
        return result

    def _capture(self) -> PageSnapshot:
        if self.indicator is None:
            return self.actions.capture_snapshot()
        self.indicator.set_border(active=True, capturing=True)
        try:
            return self.actions.capture_snapshot()
        finally:
            self.indicator.set_border(active=True)

    def _guard(
        self,
        call: FunctionCall,
        sensitive: bool,
        abort_signal: threading.Event | None,
    ) -> ActionResult | None:
        """Return an error result if a guard stops the action, else None."""
        if not self.rate_limiter.record_action():
            return ActionResult.fail("Rate limit exceeded: too many actions per minute")

        if call.name == "navigate":
            url = str(call.args.get("url", ""))
            if not self.url_guard.is_allowed(url):
                return ActionResult.fail(f"Navigation to {url} is blocked by security policy")
            if not self.rate_limiter.record_navigation():
                return ActionResult.fail("Rate limit exceeded: too many navigations per minute")

        if sensitive and self.policy_store is not None:
            return self._confirm_sensitive(call, self.policy_store, abort_signal)
        return None

    def _confirm_sensitive(
        self,
        call: FunctionCall,
        policy_store: PolicyStore,
        abort_signal: threading.Event | None,
    ) -> ActionResult | None:
        mediator = ConfirmationMediator(policy_store, call.name, call.args, self.mode_provider)
        try:
            request = mediator.request_confirmation(
                "Confirm sensitive browser action",
                f"The browser agent wants to run {call.name} with {json.dumps(call.args)}.",
            )
        except PolicyDeniedError as e:
            return ActionResult.fail(e.message)

        if request is False:
            return None
        if self.confirm is None:
            # No one to ask; proceed with the action flagged as sensitive
            return None

        request.on_confirm(self.confirm(request))
        if not mediator.begin_execution(abort_signal):
            return ActionResult.fail(f"User cancelled {call.name}")
        return None

    def _diagnose(
        self,
        action_name: str,
        action_result: ActionResult,
        previous_tree: str | None,
        snapshot: PageSnapshot,
    ) -> str | None:
        persisted = previous_tree is not None and was_blocked_by_overlay(previous_tree, snapshot.tree)
        if persisted or not action_result.succeeded:
            hint = overlay_failure_hint(action_name, snapshot.tree)
            if hint:
                logger.info("Overlay may have blocked %s", action_name)
            return hint
        return None

    def _observe(self, messages: list[Message], turn: AgentTurn) -> None:
        payload = turn.action_result.to_payload()
        if turn.sensitive:
            payload["sensitive"] = True
        messages.append(
            Message(
                role="tool",
                content=json.dumps(payload),
                tool_name=turn.requested_action.name,
            )
        )
        if turn.snapshot is not None:
            for i, message in enumerate(messages):
                if message.images:
                    head = message.content.partition(TREE_MARKER)[0]
                    messages[i] = replace(message, content=f"{head}\n{SUPERSEDED_NOTE}", images=[])
            messages.append(self._snapshot_message(turn.snapshot))
        if turn.advisory:
            messages.append(Message(role="user", content=turn.advisory))

    @staticmethod
    def _snapshot_message(snapshot: PageSnapshot, lead: str = "") -> Message:
        return Message(
            role="user",
            content=f"{lead}Current URL: {snapshot.url}{TREE_MARKER}{snapshot.tree}",
            images=[snapshot.screenshot],
        )

    def _log_turn(self, messages: list[Message], response) -> None:
        if self.session_logger is None:
            return
        self.session_logger.log_full_turn(messages, response)
        self.session_logger.log_summary(response)

    @staticmethod
    def _last_output(result: AgentResult) -> str | None:
        for turn in reversed(result.turns):
            if turn.action_result.output:
                return turn.action_result.output
        return None
