"""
The computer_use_browser tool.

Delegates a natural-language task to the browser agent loop. Starting a
browser session is itself a side effect, so the invocation goes through the
same confirmation protocol as every other tool; with no rule configured for
it the user is asked first.
"""

import threading
from collections.abc import Callable
from typing import Any

from tollgate.agent.loop import (
    AgentConfig,
    BrowserAgentLoop,
    ConfirmCallback,
    LoopStatus,
    ProgressCallback,
)
from tollgate.browser.actions import BrowserActions
from tollgate.browser.indicator import ActivityIndicator
from tollgate.browser.manager import BrowserManager
from tollgate.browser.session_log import SessionLogger
from tollgate.guards.rate_limit import default_rate_limiter
from tollgate.model.base import ModelClient
from tollgate.model.ollama import OllamaModelClient
from tollgate.schema import BrowserSettings, ModelSettings
from tollgate.tools.base import Tool, ToolInvocation, ToolResult

BROWSER_TOOL_NAME = "computer_use_browser"

ModelFactory = Callable[[ModelSettings], ModelClient]
ManagerFactory = Callable[[BrowserSettings], BrowserManager]


def default_manager_factory(settings: BrowserSettings) -> BrowserManager:
    return BrowserManager(
        headless=settings.headless,
        viewport_width=settings.viewport_width,
        viewport_height=settings.viewport_height,
    )


class BrowserToolInvocation(ToolInvocation):
    def __init__(self, tool: "BrowserTool", args: dict[str, Any], settings) -> None:
        super().__init__(tool, args, settings)
        self.browser_tool = tool

    def get_description(self) -> str:
        return f"Browser Agent executing task: {self.args['task']}"

    @property
    def confirmation_title(self) -> str:
        return "Start Browser Agent"

    def cancelled_result(self) -> ToolResult:
        return ToolResult.cancel("User cancelled the browser task.")

    def run(self, abort_signal: threading.Event | None) -> ToolResult:
        browser_settings = self.settings.browser
        tool = self.browser_tool
        session_logger = (
            SessionLogger(browser_settings.session_log_dir)
            if browser_settings.session_log_dir
            else None
        )
        default_rate_limiter.configure(browser_settings.rate_limits)

        with tool.manager_factory(browser_settings) as manager, tool.model_factory(
            self.settings.model
        ) as model:
            loop = BrowserAgentLoop(
                model=model,
                actions=BrowserActions(manager.get_page),
                config=AgentConfig.from_settings(browser_settings),
                rate_limiter=default_rate_limiter,
                policy_store=self.settings.policy_store,
                mode_provider=lambda: self.settings.approval_mode,
                confirm=tool.confirm,
                session_logger=session_logger,
                indicator=None if browser_settings.headless else ActivityIndicator(manager.get_page),
            )
            result = loop.run(self.args["task"], abort_signal=abort_signal, on_progress=tool.on_progress)

        metadata = {"status": result.status.value, "turns": len(result.turns)}
        if result.status == LoopStatus.COMPLETED:
            return ToolResult.ok(result.output or "Task completed", **metadata)
        if result.status == LoopStatus.CANCELLED:
            return ToolResult.cancel("Browser task cancelled.")
        if result.status == LoopStatus.TRUNCATED:
            partial = result.output or "No result"
            return ToolResult.ok(
                f"{partial}\n[Truncated after {len(result.turns)} turns]",
                display=f"Stopped after {len(result.turns)} turns",
                truncated=True,
                **metadata,
            )
        return ToolResult.fail(result.error_message or "Browser task failed", **metadata)


class BrowserTool(Tool):
    """
    Delegate a task to the browser agent.

    Arguments:
        task (str): Natural-language description of what to do
    """

    def __init__(
        self,
        model_factory: ModelFactory = OllamaModelClient,
        manager_factory: ManagerFactory = default_manager_factory,
        confirm: ConfirmCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.model_factory = model_factory
        self.manager_factory = manager_factory
        self.confirm = confirm
        self.on_progress = on_progress

    @property
    def name(self) -> str:
        return BROWSER_TOOL_NAME

    @property
    def display_name(self) -> str:
        return "Browser Agent"

    @property
    def description(self) -> str:
        return (
            "Delegates a task to a specialized browser-use agent. Use this for any task "
            "requiring web browsing, interactions, or collecting information from websites."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "description": "The natural language description of the task to perform.",
                },
            },
            "required": ["task"],
        }

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        task = args.get("task")
        if not isinstance(task, str) or not task.strip():
            return ["'task' is required and must be a non-empty string"]
        return []

    def create_invocation(self, args: dict[str, Any], settings) -> BrowserToolInvocation:
        return BrowserToolInvocation(self, args, settings)
