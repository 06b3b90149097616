"""
Base classes for the tool interface.

This module defines the core abstractions for tools in Tollgate:
- Tool: Declarative description of a tool; builds invocations
- ToolInvocation: One validated call, gated by a ConfirmationMediator
- ToolResult: Standardized result format returned to the model

Design Principles:
    - Tools are stateless - runtime state comes from Settings
    - Arguments are validated when the invocation is built
    - Every invocation is confirmed before it runs: should_confirm_execute()
      first, then execute()
    - Expected failures come back as ToolResult, never as exceptions;
      a policy denial is the one exception, and it is raised before any
      side effect
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from tollgate.confirmation import ConfirmationMediator, ConfirmationRequest
from tollgate.errors import ToolInvalidArgsError
from tollgate.schema import ToolResultStatus

if TYPE_CHECKING:
    from tollgate.config import Settings


@dataclass(frozen=True)
class ToolResult:
    """
    Standardized output from a tool invocation.

    Attributes:
        content: Text returned to the model
        display: Short text shown to the user
        error: Error message if the invocation failed
        status: SUCCESS, CANCELLED or ERROR
        metadata: Additional details about the execution
    """

    content: str
    display: str
    error: str | None = None
    status: ToolResultStatus = ToolResultStatus.SUCCESS
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == ToolResultStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status == ToolResultStatus.CANCELLED

    @classmethod
    def ok(cls, content: str, display: str | None = None, **metadata: Any) -> "ToolResult":
        """Create a successful result."""
        return cls(content=content, display=display or content, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        content: str | None = None,
        display: str | None = None,
        **metadata: Any,
    ) -> "ToolResult":
        """Create a failed result."""
        return cls(
            content=content or f"Error: {error}",
            display=display or f"Error: {error}",
            error=error,
            status=ToolResultStatus.ERROR,
            metadata=metadata,
        )

    @classmethod
    def cancel(cls, content: str, display: str = "Cancelled") -> "ToolResult":
        """Create a cancellation result (not an error)."""
        return cls(content=content, display=display, status=ToolResultStatus.CANCELLED)


class Tool(ABC):
    """
    Abstract base class for all Tollgate tools.

    Subclasses must implement:
    - name property: The tool's unique identifier (what policy rules target)
    - create_invocation(): Wrap validated args in a ToolInvocation

    Example:
        class EchoTool(Tool):
            @property
            def name(self) -> str:
                return "echo"

            def create_invocation(self, args, settings):
                return EchoInvocation(self, args, settings)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool."""
        ...

    @property
    def display_name(self) -> str:
        """Human-readable name used in prompts and denial messages."""
        return self.name

    @property
    def description(self) -> str:
        """Description shown to the model."""
        return f"Tool: {self.name}"

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON schema of the arguments."""
        return {"type": "object", "properties": {}}

    def declaration(self) -> dict[str, Any]:
        """Function declaration in the shape model backends expect."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        """
        Validate the arguments for this tool.

        Returns:
            List of validation error messages (empty if valid)
        """
        return []

    def build(self, args: dict[str, Any], settings: "Settings") -> "ToolInvocation":
        """
        Validate args and create an invocation.

        Raises:
            ToolInvalidArgsError: If validation fails
        """
        errors = self.validate_args(args)
        if errors:
            raise ToolInvalidArgsError(
                tool=self.name,
                tool_args=args,
                validation_error="; ".join(errors),
            )
        return self.create_invocation(args, settings)

    @abstractmethod
    def create_invocation(self, args: dict[str, Any], settings: "Settings") -> "ToolInvocation":
        """Create the invocation for already validated args."""
        ...

    def __repr__(self) -> str:
        return f"<Tool: {self.name}>"


class ToolInvocation(ABC):
    """
    A single validated call of a tool.

    The invocation owns a ConfirmationMediator; the contract for callers is:

        request = invocation.should_confirm_execute(abort_signal)
        if request:
            request.on_confirm(outcome)
        result = invocation.execute(abort_signal)

    Subclasses implement run() (the side effect) and may override the
    confirmation text and the cancellation result.
    """

    def __init__(self, tool: Tool, args: dict[str, Any], settings: "Settings") -> None:
        self.tool = tool
        self.args = args
        self.settings = settings
        self.mediator = ConfirmationMediator(
            policy_store=settings.policy_store,
            tool_name=tool.name,
            args=self.policy_args(),
            mode_provider=lambda: settings.approval_mode,
            display_name=tool.display_name,
        )

    def policy_args(self) -> dict[str, Any]:
        """Arguments as the policy store sees them."""
        return self.args

    def get_description(self) -> str:
        return f"{self.tool.display_name}: {self.args}"

    @property
    def confirmation_title(self) -> str:
        return f"Confirm {self.tool.display_name}"

    @property
    def confirmation_prompt(self) -> str:
        return self.get_description()

    def should_confirm_execute(
        self,
        abort_signal: threading.Event | None = None,
    ) -> ConfirmationRequest | Literal[False]:
        """
        Ask the policy whether this call needs the user.

        Raises:
            PolicyDeniedError: If the policy denies the call
        """
        return self.mediator.request_confirmation(
            self.confirmation_title,
            self.confirmation_prompt,
            details={"args": self.args},
        )

    def execute(self, abort_signal: threading.Event | None = None) -> ToolResult:
        """
        Run the tool if the confirmation protocol allows it.

        Raises:
            PolicyDeniedError: If the policy denied the call
            ConfirmationRequiredError: If confirmation was skipped
        """
        if not self.mediator.begin_execution(abort_signal):
            return self.cancelled_result()
        return self.run(abort_signal)

    def cancelled_result(self) -> ToolResult:
        return ToolResult.cancel(f"User cancelled {self.tool.display_name}.")

    @abstractmethod
    def run(self, abort_signal: threading.Event | None) -> ToolResult:
        """Perform the side effect. Only called once execution is authorized."""
        ...
