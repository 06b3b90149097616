"""
Tool registry for Tollgate.

The registry maps tool names to Tool instances. Names are what policy
rules target, so they must be unique.

Usage:
    from tollgate.tools.registry import default_registry, register_tool

    register_tool(WriteFileTool())
    tool = default_registry.get("write_file")
"""

from collections.abc import Iterator
from typing import Any

from tollgate.errors import ToolNotFoundError
from tollgate.tools.base import Tool


class ToolRegistry:
    """Registry for looking up tools by name."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool, replacing any tool with the same name.

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        name = tool.name
        if not name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        self._tools[name] = tool

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name)
        return tool

    def get_optional(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns False if it wasn't registered."""
        if name in self._tools:
            del self._tools[name]
            return True
        return False

    def clear(self) -> None:
        self._tools.clear()

    def list_tools(self) -> list[str]:
        """List all registered tool names in sorted order."""
        return sorted(self._tools.keys())

    def declarations(self) -> list[dict[str, Any]]:
        """Function declarations for every registered tool."""
        return [self._tools[name].declaration() for name in self.list_tools()]

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"


# Global default registry instance
default_registry = ToolRegistry()


def register_tool(tool: Tool) -> None:
    """Register a tool in the default registry."""
    default_registry.register(tool)


def get_tool(name: str) -> Tool:
    """
    Get a tool from the default registry.

    Raises:
        ToolNotFoundError: If no tool with that name is registered
    """
    return default_registry.get(name)
