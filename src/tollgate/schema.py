"""
Schema definitions for Tollgate.

This module defines the Pydantic models used throughout Tollgate:
- PolicyRule/PolicyDecision: What the policy says about a proposed tool call
- RuleSpec/TollgateConfig: The YAML configuration format
- RateLimits/BrowserSettings/ModelSettings: Tunables for the browser agent
- ActionResult/OverlayDetectionResult: Browser-side runtime results

Design Decisions:
    - Rules are immutable once created (frozen=True); the rule set only grows
    - Configuration forbids unknown keys so typos fail loudly
    - Enum values match the strings used in YAML files
"""

import re
import uuid
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tollgate.errors import ConfigLoadError

# Rule priorities. Higher wins.
# Remembered "proceed always" approvals rank below static rules so a
# configured DENY still wins.
ALWAYS_ALLOW_PRIORITY = 60
STATIC_RULE_PRIORITY = 70
DYNAMIC_RULE_PRIORITY = 80


# =============================================================================
# Enums
# =============================================================================


class Decision(str, Enum):
    """Tri-state outcome of evaluating the rule set against one call."""

    ALLOW = "allow"
    DENY = "deny"
    ASK_USER = "ask_user"


class ApprovalMode(str, Enum):
    """
    Named operating restriction of the agent.

    PLAN is the read-only planning mode; rules can be scoped to it so that
    narrowly granted write access disappears as soon as the mode changes.
    """

    DEFAULT = "default"
    AUTO_EDIT = "autoEdit"
    PLAN = "plan"
    YOLO = "yolo"


class ConfirmationOutcome(str, Enum):
    """Human answer to a pending confirmation. Produced exactly once."""

    PROCEED_ONCE = "proceed_once"
    PROCEED_ALWAYS = "proceed_always"
    CANCEL = "cancel"


class ToolResultStatus(str, Enum):
    """How a tool invocation ended."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


# =============================================================================
# Policy Models
# =============================================================================


class PolicyRule(BaseModel):
    """
    A single rule in the policy store.

    Attributes:
        tool_name: Tool the rule applies to (None = every tool)
        args_pattern: Regex searched in the serialized call arguments
                      (None = any arguments)
        decision: What the rule decides when it wins
        priority: Higher priority wins; equal priority goes to the newest rule
        modes: Approval modes the rule is active in (empty = all modes)
        source: Provenance tag for audit (e.g., "default", "PlanMode")
        id: Unique rule identifier
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool_name: str | None = Field(
        default=None,
        description="Tool the rule applies to (None = every tool)",
    )
    args_pattern: re.Pattern[str] | None = Field(
        default=None,
        description="Regex searched in the serialized call arguments",
    )
    decision: Decision = Field(..., description="Decision when this rule wins")
    priority: int = Field(
        default=STATIC_RULE_PRIORITY,
        description="Rule priority; higher wins",
    )
    modes: frozenset[ApprovalMode] = Field(
        default_factory=frozenset,
        description="Modes the rule is active in (empty = all)",
    )
    source: str = Field(default="static", description="Provenance tag")
    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex[:12],
        description="Unique rule identifier",
    )

    def applies_to(self, tool_name: str, mode: ApprovalMode) -> bool:
        """Check the tool and mode filters (not the argument pattern)."""
        if self.tool_name is not None and self.tool_name != tool_name:
            return False
        return not self.modes or mode in self.modes

    def matches_args(self, serialized_args: str) -> bool:
        """Check the argument pattern against serialized call arguments."""
        if self.args_pattern is None:
            return True
        return self.args_pattern.search(serialized_args) is not None


class PolicyDecision(BaseModel):
    """
    Result of evaluating a tool call against the policy store.

    Attributes:
        decision: ALLOW, DENY or ASK_USER
        reason: Human-readable explanation of the decision
        rule_id: ID of the winning rule (None when the default applied)
        source: Source tag of the winning rule
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    decision: Decision = Field(..., description="The decision")
    reason: str = Field(..., description="Human-readable explanation")
    rule_id: str | None = Field(default=None, description="Winning rule ID")
    source: str | None = Field(default=None, description="Winning rule source")

    @property
    def allowed(self) -> bool:
        """Whether the call may run without asking."""
        return self.decision == Decision.ALLOW

    @classmethod
    def from_rule(cls, rule: PolicyRule) -> "PolicyDecision":
        """Create a decision produced by a matching rule."""
        return cls(
            decision=rule.decision,
            reason=f"Matched rule {rule.id} (priority {rule.priority}, source {rule.source})",
            rule_id=rule.id,
            source=rule.source,
        )

    @classmethod
    def default(cls) -> "PolicyDecision":
        """Create the fallback decision used when no rule matches."""
        return cls(
            decision=Decision.ASK_USER,
            reason="No matching rule; asking the user",
        )


class RuleSpec(BaseModel):
    """
    A static rule as written in the YAML configuration.

    Example:
        rules:
          - tool_name: write_file
            decision: deny
            modes: [plan]
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool_name: str | None = None
    args_pattern: str | None = None
    decision: Decision
    priority: int = STATIC_RULE_PRIORITY
    modes: list[ApprovalMode] = Field(default_factory=list)
    source: str = "config"

    @field_validator("args_pattern")
    @classmethod
    def validate_pattern(cls, v: str | None) -> str | None:
        """Reject patterns that do not compile."""
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                msg = f"Invalid args_pattern {v!r}: {e}"
                raise ValueError(msg) from e
        return v

    def to_rule(self) -> PolicyRule:
        """Convert to an immutable PolicyRule."""
        return PolicyRule(
            tool_name=self.tool_name,
            args_pattern=re.compile(self.args_pattern) if self.args_pattern else None,
            decision=self.decision,
            priority=self.priority,
            modes=frozenset(self.modes),
            source=self.source,
        )


# =============================================================================
# Browser / Model Settings
# =============================================================================


class RateLimits(BaseModel):
    """Sliding-window ceilings for browser activity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_actions_per_minute: int = Field(default=60, gt=0)
    max_navigations_per_minute: int = Field(default=10, gt=0)


class BrowserSettings(BaseModel):
    """
    Settings for the browser agent.

    Attributes:
        allowed_domains: URL patterns the agent may navigate to
                         (empty = any non-blocked URL)
        headless: Launch the browser without a window
        max_turns: Turn cap per task
        rate_limits: Action and navigation ceilings
        session_log_dir: Directory for per-turn session logs (None = off)
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed_domains: list[str] = Field(default_factory=list)
    headless: bool = False
    max_turns: int = Field(default=20, gt=0)
    rate_limits: RateLimits = Field(default_factory=RateLimits)
    session_log_dir: str | None = None
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=800, gt=0)


class ModelSettings(BaseModel):
    """Connection settings for the model backend."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://localhost:11434"
    model: str = "qwen2.5vl:7b"
    timeout_seconds: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    temperature: float = Field(default=0.1, ge=0)
    max_tokens: int = Field(default=1024, gt=0)


class TollgateConfig(BaseModel):
    """
    Complete Tollgate configuration.

    Attributes:
        approval_mode: Mode the process starts in
        rules: Static rules added at startup (after the built-in defaults)
        browser: Browser agent settings
        model: Model backend settings
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    approval_mode: ApprovalMode = ApprovalMode.DEFAULT
    rules: list[RuleSpec] = Field(default_factory=list)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)


# =============================================================================
# Browser Runtime Models
# =============================================================================


class ActionResult(BaseModel):
    """
    Outcome of one browser primitive.

    Driver failures are reported here as `error` rather than raised, so the
    agent loop can hand them back to the model.
    """

    model_config = ConfigDict(frozen=True)

    output: str | None = None
    error: str | None = None
    url: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, output: str, url: str | None = None) -> "ActionResult":
        """Create a successful result."""
        return cls(output=output, url=url)

    @classmethod
    def fail(cls, error: str, url: str | None = None) -> "ActionResult":
        """Create a failed result."""
        return cls(error=error, url=url)

    def to_payload(self) -> dict[str, Any]:
        """Dict form sent back to the model as a function response."""
        return self.model_dump(exclude_none=True)


class OverlayDetectionResult(BaseModel):
    """
    Result of scanning a page snapshot for blocking overlays.

    Two results describe the same overlay iff their signatures are equal.
    """

    model_config = ConfigDict(frozen=True)

    has_overlay: bool
    signature: str = ""
    suggested_action: str = ""


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> TollgateConfig:
    """
    Load the Tollgate configuration from a YAML file.

    Raises:
        ConfigLoadError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        with path.open() as f:
            content = f.read()
    except OSError as e:
        raise ConfigLoadError(path=str(path), underlying_error=str(e)) from e
    return load_config_from_string(content, source=str(path))


def load_config_from_string(content: str, source: str = "<string>") -> TollgateConfig:
    """Load the Tollgate configuration from a YAML string."""
    try:
        data = yaml.safe_load(content) or {}
        return TollgateConfig.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigLoadError(path=source, underlying_error=str(e)) from e
