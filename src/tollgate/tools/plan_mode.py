"""
The enter_plan_mode tool.

Switches the agent into the read-only plan mode. Optionally grants write
access to one file or directory for the duration of plan mode, so the
agent can keep a plan document up to date while everything else stays
read-only.

Ordering matters: the path grant is validated and injected first, and the
mode switch only happens once that succeeded. A cancelled or aborted
invocation does neither.
"""

import threading
from typing import Any

from tollgate.policy.defaults import FILE_MUTATING_TOOLS
from tollgate.policy.injector import DynamicRuleInjector
from tollgate.schema import ApprovalMode, ToolResultStatus
from tollgate.tools.base import Tool, ToolInvocation, ToolResult

ENTER_PLAN_MODE_TOOL_NAME = "enter_plan_mode"


class EnterPlanModeInvocation(ToolInvocation):
    def get_description(self) -> str:
        return self.args.get("reason") or "Initiating Plan Mode"

    @property
    def confirmation_title(self) -> str:
        return "Enter Plan Mode"

    @property
    def confirmation_prompt(self) -> str:
        return "This will restrict the agent to read-only tools to allow for safe planning."

    def cancelled_result(self) -> ToolResult:
        return ToolResult.cancel("User cancelled entering Plan Mode.")

    def run(self, abort_signal: threading.Event | None) -> ToolResult:
        path = self.args.get("path")
        reason = self.args.get("reason")

        if path:
            granted = DynamicRuleInjector(self.settings).grant_path_access(
                path,
                tool_names=self.args.get("allowed_tools") or FILE_MUTATING_TOOLS,
                mode=ApprovalMode.PLAN,
                source="PlanMode",
            )
            if isinstance(granted, str):
                return ToolResult(
                    content=f"Error: {granted}",
                    display="Error: Invalid path",
                    error=granted,
                    status=ToolResultStatus.ERROR,
                )

        self.settings.set_approval_mode(ApprovalMode.PLAN)

        display = f"Switching to Plan mode: {reason}" if reason else "Switching to Plan mode"
        if path:
            display += f" (Allowed path: {path})"
        content = (
            f"Switching to Plan mode. Write access enabled for: {path}"
            if path
            else "Switching to Plan mode."
        )
        return ToolResult.ok(content, display=display)


class EnterPlanModeTool(Tool):
    """
    Enter read-only plan mode.

    Arguments:
        reason (str): Why the agent wants to plan (optional)
        path (str): File or directory to keep writable in plan mode (optional)
        allowed_tools (list[str]): Tools the path grant covers,
            default ["write_file", "replace"]
    """

    @property
    def name(self) -> str:
        return ENTER_PLAN_MODE_TOOL_NAME

    @property
    def display_name(self) -> str:
        return "Enter Plan Mode"

    @property
    def description(self) -> str:
        return (
            "Switch to Plan Mode to safely research, design, and plan complex "
            "changes using read-only tools."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "reason": {
                    "type": "string",
                    "description": "Short reason explaining why you are entering plan mode.",
                },
                "path": {
                    "type": "string",
                    "description": "Optional file path to allow write access to while in Plan Mode.",
                },
                "allowed_tools": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tools to allow for the path. Defaults to write_file and replace.",
                },
            },
        }

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        errors = []
        for key in ("reason", "path"):
            if key in args and args[key] is not None and not isinstance(args[key], str):
                errors.append(f"'{key}' must be a string")
        tools = args.get("allowed_tools")
        if tools is not None and (
            not isinstance(tools, list) or not all(isinstance(t, str) for t in tools)
        ):
            errors.append("'allowed_tools' must be a list of strings")
        return errors

    def create_invocation(self, args: dict[str, Any], settings) -> EnterPlanModeInvocation:
        return EnterPlanModeInvocation(self, args, settings)
