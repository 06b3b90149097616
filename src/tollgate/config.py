"""
Runtime settings for Tollgate.

Settings is the collaborator tools talk to at runtime: it knows the target
(workspace) directory, holds the current approval mode, validates paths
against the workspace boundary, and forwards rule registration to the
policy store.

The YAML file format lives in tollgate.schema (TollgateConfig); this module
turns a loaded config into live state.
"""

import logging
from collections.abc import Callable
from pathlib import Path

from tollgate.policy.defaults import default_rules
from tollgate.policy.engine import PolicyStore, default_policy_store
from tollgate.schema import (
    ApprovalMode,
    BrowserSettings,
    ModelSettings,
    PolicyRule,
    TollgateConfig,
)

logger = logging.getLogger(__name__)

PathValidator = Callable[[str], str | None]


class Settings:
    """
    Live configuration shared by tool invocations.

    Attributes:
        target_dir: Absolute workspace directory relative paths resolve against
        policy_store: The rule store consulted by every invocation
        browser: Browser agent settings
        model: Model backend settings
    """

    def __init__(
        self,
        target_dir: str | Path,
        policy_store: PolicyStore | None = None,
        approval_mode: ApprovalMode = ApprovalMode.DEFAULT,
        browser: BrowserSettings | None = None,
        model: ModelSettings | None = None,
        path_validator: PathValidator | None = None,
    ) -> None:
        self.target_dir = str(Path(target_dir).absolute())
        self.policy_store = policy_store if policy_store is not None else default_policy_store
        self.browser = browser or BrowserSettings()
        self.model = model or ModelSettings()
        self._approval_mode = approval_mode
        self._path_validator = path_validator

    @classmethod
    def from_config(
        cls,
        config: TollgateConfig,
        target_dir: str | Path,
        policy_store: PolicyStore | None = None,
    ) -> "Settings":
        """
        Build settings from a loaded config.

        Without a policy_store a fresh one is created holding the built-in
        default rules. The config's own rules are appended after them, so a
        config rule with equal priority overrides a default. A store that is
        passed in is used as it is.
        """
        if policy_store is None:
            policy_store = PolicyStore(default_rules())
        settings = cls(
            target_dir=target_dir,
            policy_store=policy_store,
            approval_mode=config.approval_mode,
            browser=config.browser,
            model=config.model,
        )
        settings.policy_store.add_rules([spec.to_rule() for spec in config.rules])
        return settings

    @property
    def approval_mode(self) -> ApprovalMode:
        return self._approval_mode

    def set_approval_mode(self, mode: ApprovalMode) -> None:
        """Switch the active approval mode."""
        if mode != self._approval_mode:
            logger.info("Approval mode: %s -> %s", self._approval_mode.value, mode.value)
        self._approval_mode = mode

    def add_policy_rule(self, rule: PolicyRule) -> None:
        """Register a rule with the policy store (pure append)."""
        self.policy_store.add_rule(rule)

    def validate_path_access(self, absolute_path: str) -> str | None:
        """
        Check that a path stays inside the workspace.

        Symlinks are resolved before the containment check so a link inside
        the workspace cannot point the agent somewhere else.

        Returns:
            An error message, or None if access is allowed
        """
        if self._path_validator is not None:
            return self._path_validator(absolute_path)

        try:
            resolved = Path(absolute_path).resolve()
            root = Path(self.target_dir).resolve()
        except (OSError, RuntimeError) as e:
            return f"Access denied: cannot resolve {absolute_path}: {e}"

        try:
            resolved.relative_to(root)
        except ValueError:
            return (
                f"Access denied: {absolute_path} resolves to {resolved}, "
                f"which is outside the workspace {root}"
            )
        return None

    def __repr__(self) -> str:
        return f"<Settings: target_dir={self.target_dir} mode={self._approval_mode.value}>"
