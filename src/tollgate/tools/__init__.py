"""Tools the agent can call, each gated by the confirmation protocol."""

from tollgate.tools.base import Tool, ToolInvocation, ToolResult
from tollgate.tools.browser import BrowserTool
from tollgate.tools.fs import ReplaceTool, WriteFileTool
from tollgate.tools.plan_mode import EnterPlanModeTool
from tollgate.tools.registry import ToolRegistry, default_registry, get_tool, register_tool


def register_builtin_tools(registry: ToolRegistry | None = None) -> ToolRegistry:
    """Register the built-in tools (default registry unless one is given)."""
    registry = registry if registry is not None else default_registry
    registry.register(WriteFileTool())
    registry.register(ReplaceTool())
    registry.register(EnterPlanModeTool())
    registry.register(BrowserTool())
    return registry


__all__ = [
    "BrowserTool",
    "EnterPlanModeTool",
    "ReplaceTool",
    "Tool",
    "ToolInvocation",
    "ToolRegistry",
    "ToolResult",
    "WriteFileTool",
    "default_registry",
    "get_tool",
    "register_builtin_tools",
    "register_tool",
]
