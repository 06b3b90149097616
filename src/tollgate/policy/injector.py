"""
Dynamic rule injection for Tollgate.

Privileged tools use DynamicRuleInjector to widen the policy at the moment
the user authorizes them. The canonical case is entering plan mode with
write access to a single file or directory: plan mode denies file edits by
default, and the grant reopens exactly one subtree for the two
content-mutating tools, only while plan mode is active.

Rules are never retracted. They stay in the store and simply stop
matching once the mode they were granted for is no longer active.
"""

import logging
import os
import re
from typing import Protocol

from tollgate.policy.defaults import FILE_MUTATING_TOOLS
from tollgate.schema import DYNAMIC_RULE_PRIORITY, ApprovalMode, Decision, PolicyRule

logger = logging.getLogger(__name__)


class RuleHost(Protocol):
    """What the injector needs from its runtime collaborator (see Settings)."""

    target_dir: str

    def validate_path_access(self, absolute_path: str) -> str | None: ...

    def add_policy_rule(self, rule: PolicyRule) -> None: ...


def resolve_path(path: str, base_dir: str) -> str:
    """Resolve a possibly relative path against base_dir, normalized."""
    return os.path.normpath(os.path.join(base_dir, path))


def path_scope_pattern(absolute_path: str, base_dir: str | None = None) -> re.Pattern[str]:
    """
    Build the argument pattern for a path grant.

    Matches the serialized `"file_path":"<path>"` pair for the path itself
    and for anything nested beneath it, but not for siblings sharing a
    prefix (`/a/feature-1` does not cover `/a/feature-10`).

    With base_dir the pattern also accepts the path written relative to
    it, so callers that pass relative arguments match the same grant.
    Paths are matched as text: `..` segments are not interpreted, so
    arguments should be normalized first.
    """
    forms = [re.escape(absolute_path)]
    if base_dir is not None:
        relative = os.path.relpath(absolute_path, base_dir)
        if relative != os.curdir and not relative.startswith(os.pardir):
            forms.append(re.escape(relative))
    return re.compile('"file_path":"(?:' + "|".join(forms) + ')(?:/.*)?"')


class DynamicRuleInjector:
    """
    Adds scoped ALLOW rules on behalf of a privileged tool.

    Usage:
        injector = DynamicRuleInjector(settings)
        result = injector.grant_path_access("conductor/tracks/feature-1")
        if isinstance(result, str):
            # validation failed, nothing was added
    """

    def __init__(self, host: RuleHost) -> None:
        self.host = host

    def grant_path_access(
        self,
        path: str,
        tool_names: tuple[str, ...] | list[str] = FILE_MUTATING_TOOLS,
        mode: ApprovalMode = ApprovalMode.PLAN,
        source: str = "PlanMode",
    ) -> list[PolicyRule] | str:
        """
        Grant the given tools write access to path and its subtree in mode.

        Args:
            path: Relative (to the target dir) or absolute path
            tool_names: Tools the grant applies to
            mode: The only mode the new rules are active in
            source: Provenance tag for the new rules

        Returns:
            The added rules, or the validation error message if the path
            was rejected (in which case nothing was added)
        """
        absolute = resolve_path(path, self.host.target_dir)

        error = self.host.validate_path_access(absolute)
        if error:
            logger.warning("Refusing path grant for %s: %s", absolute, error)
            return error

        pattern = path_scope_pattern(absolute, self.host.target_dir)
        added: list[PolicyRule] = []
        for tool_name in tool_names:
            rule = PolicyRule(
                tool_name=tool_name,
                args_pattern=pattern,
                decision=Decision.ALLOW,
                priority=DYNAMIC_RULE_PRIORITY,
                modes=frozenset({mode}),
                source=source,
            )
            self.host.add_policy_rule(rule)
            added.append(rule)

        logger.info(
            "Granted %s access to %s in %s mode (%d rules)",
            ", ".join(tool_names),
            absolute,
            mode.value,
            len(added),
        )
        return added
