"""
Exception hierarchy for Tollgate.

All Tollgate exceptions inherit from TollgateError, allowing callers to catch
all Tollgate-specific exceptions with a single except clause.

Exception Categories:
    - PolicyDeniedError: Tool call blocked by a DENY rule
    - ConfirmationError: Confirmation protocol misuse (skipped, resolved twice)
    - ToolError: Tool lookup or argument problems
    - ModelError: The model client failed to produce a usable response
    - BrowserError: The browser driver could not be started
    - ConfigError: Configuration file could not be loaded

There is no cancellation error: a cancelled confirmation is a normal,
structured result.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Policy errors: 1xxx
ERROR_POLICY_DENIED = 1001

# Confirmation errors: 11xx
ERROR_CONFIRMATION_REQUIRED = 1101
ERROR_CONFIRMATION_ALREADY_RESOLVED = 1102

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_INVALID_ARGS = 2002

# Model errors: 3xxx
ERROR_MODEL_CONNECTION = 3001
ERROR_MODEL_TIMEOUT = 3002
ERROR_MODEL_NOT_FOUND = 3003
ERROR_MODEL_INVALID_RESPONSE = 3004

# Browser errors: 4xxx
ERROR_BROWSER_LAUNCH = 4001

# Config errors: 5xxx
ERROR_CONFIG_LOAD = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TollgateError(Exception):
    """
    Base exception for all Tollgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyDeniedError(TollgateError):
    """
    Raised when a tool call is blocked by a DENY decision.

    Raised from the confirmation step, before the tool body runs, so no
    state change can have happened yet.

    Attributes:
        tool: Name (or display name) of the tool that was blocked
        reason: Why the policy denied this action
        rule_id: ID of the rule that produced the denial
    """

    tool: str = ""
    reason: str = ""
    rule_id: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f'Tool execution for "{self.tool}" denied by policy.'
        if self.code == 0:
            self.code = ERROR_POLICY_DENIED
        self.context.update({
            "tool": self.tool,
            "reason": self.reason,
            "rule_id": self.rule_id,
        })


# =============================================================================
# Confirmation Errors
# =============================================================================


@dataclass
class ConfirmationError(TollgateError):
    """
    Base class for confirmation protocol errors.

    Attributes:
        tool: Name of the tool whose confirmation was misused
        state: Confirmation state at the time of the error
    """

    tool: str = ""
    state: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "state": self.state,
        })


@dataclass
class ConfirmationRequiredError(ConfirmationError):
    """Raised when execute() is reached without a resolved confirmation."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool {self.tool} requires user confirmation before it can run"
        if self.code == 0:
            self.code = ERROR_CONFIRMATION_REQUIRED
        if not self.suggestion:
            self.suggestion = "Call should_confirm_execute() and resolve the request first"
        super().__post_init__()


@dataclass
class ConfirmationAlreadyResolvedError(ConfirmationError):
    """Raised when a confirmation outcome is delivered more than once."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Confirmation for {self.tool} was already resolved ({self.state})"
        if self.code == 0:
            self.code = ERROR_CONFIRMATION_ALREADY_RESOLVED
        super().__post_init__()


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(TollgateError):
    """
    Base class for tool lookup and argument errors.

    Attributes:
        tool: Name of the tool
        tool_args: Arguments that were provided
    """

    tool: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "tool_args": self.tool_args,
        })


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check tool name spelling or register the tool"
        super().__post_init__()


@dataclass
class ToolInvalidArgsError(ToolError):
    """Raised when tool arguments are invalid."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid arguments for {self.tool}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_INVALID_ARGS
        super().__post_init__()
        self.context["validation_error"] = self.validation_error


# =============================================================================
# Model Errors
# =============================================================================


@dataclass
class ModelError(TollgateError):
    """
    Base class for model client errors.

    These are not recoverable inside the agent loop; they end the task
    with a FAILED status.

    Attributes:
        client: Name of the model backend (e.g., "ollama")
        model: Model identifier
    """

    client: str = ""
    model: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "client": self.client,
            "model": self.model,
        })


@dataclass
class ModelConnectionError(ModelError):
    """Raised when the model backend cannot be reached."""

    url: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot connect to {self.client} at {self.url}"
            if self.underlying_error:
                self.message += f": {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MODEL_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the model server is running and reachable"
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "underlying_error": self.underlying_error,
        })


@dataclass
class ModelTimeoutError(ModelError):
    """Raised when the model takes too long to respond."""

    timeout_seconds: float = 0.0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Model {self.model} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_MODEL_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase timeout_seconds in the model settings"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class ModelNotFoundError(ModelError):
    """Raised when the requested model is not available on the backend."""

    available_models: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Model not found: {self.model}"
        if self.code == 0:
            self.code = ERROR_MODEL_NOT_FOUND
        if not self.suggestion:
            if self.available_models:
                self.suggestion = f"Available models: {', '.join(self.available_models[:5])}"
            else:
                self.suggestion = f"Pull the model first: ollama pull {self.model}"
        super().__post_init__()
        self.context["available_models"] = self.available_models


@dataclass
class ModelResponseError(ModelError):
    """Raised when the model response cannot be interpreted."""

    raw_response: str = ""
    parse_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid response from {self.model}: {self.parse_error}"
        if self.code == 0:
            self.code = ERROR_MODEL_INVALID_RESPONSE
        super().__post_init__()
        self.context.update({
            "raw_response": self.raw_response,
            "parse_error": self.parse_error,
        })


# =============================================================================
# Browser Errors
# =============================================================================


@dataclass
class BrowserLaunchError(TollgateError):
    """Raised when the browser cannot be launched or connected."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to launch browser: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BROWSER_LAUNCH
        if not self.suggestion:
            self.suggestion = "Install the browser binaries: playwright install chromium"
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigLoadError(TollgateError):
    """Raised when a configuration file cannot be read or validated."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load config {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_LOAD
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
