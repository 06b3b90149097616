"""
Policy Store for Tollgate.

The Policy Store is the rule matcher every side-effecting tool call passes
through before it may run.

Design Principles:
    - Fail toward confirmation: no matching rule means ASK_USER, never ALLOW
    - Pure evaluation: same (rules, tool, args, mode) always gives the same
      decision; evaluation reads no other state
    - Append-only: rules are added, never edited or removed

How it works:
    1. Arguments are serialized to compact JSON with sorted keys
    2. Rules are filtered by tool name and approval mode
    3. Each remaining rule's args_pattern is searched in the serialized string
    4. The highest priority match wins; on a tie the most recently added rule
       wins
    5. No match returns ASK_USER

Security Note:
    Matching is done on the flattened JSON text, not on structured fields.
    A pattern for "file_path":"/a" also matches if another argument's value
    happens to contain that exact text. Rules that grant access should anchor
    on the quoted key as DynamicRuleInjector does.
"""

import json
import logging
import re
import threading
from typing import Any

from tollgate.policy.defaults import default_rules
from tollgate.schema import ApprovalMode, PolicyDecision, PolicyRule

logger = logging.getLogger(__name__)


def serialize_args(args: dict[str, Any]) -> str:
    """
    Serialize call arguments to the string form rules are matched against.

    Compact separators keep keys and values adjacent ("file_path":"/x"), and
    sorted keys make the output independent of argument order.
    """
    return json.dumps(args, separators=(",", ":"), sort_keys=True, default=str)


def call_scope_pattern(args: dict[str, Any]) -> re.Pattern[str]:
    """
    Build the argument pattern a remembered approval is scoped to.

    A call carrying a file_path is scoped to that exact file, anything else
    to its exact serialized arguments.
    """
    file_path = args.get("file_path")
    if isinstance(file_path, str):
        pair = serialize_args({"file_path": file_path})[1:-1]
        return re.compile("[{,]" + re.escape(pair) + "[,}]")
    return re.compile("^" + re.escape(serialize_args(args)) + "$")


class PolicyStore:
    """
    Ordered rule set evaluating tool calls to ALLOW / DENY / ASK_USER.

    Usage:
        store = PolicyStore()
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.DENY))
        decision = store.evaluate("write_file", {"file_path": "/tmp/x"}, ApprovalMode.PLAN)
        if decision.decision == Decision.ALLOW:
            # proceed without asking

    The store is shared process-wide (see default_policy_store). Adding rules
    is assumed to happen from one writer at a time; the lock only keeps the
    list consistent for readers.
    """

    def __init__(self, rules: list[PolicyRule] | None = None) -> None:
        self._rules: list[PolicyRule] = list(rules or [])
        self._lock = threading.Lock()

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        """Snapshot of the rule set in insertion order."""
        with self._lock:
            return tuple(self._rules)

    def add_rule(self, rule: PolicyRule) -> None:
        """
        Append a rule.

        No conflict checking is done here; precedence is resolved at
        evaluation time.
        """
        with self._lock:
            self._rules.append(rule)
        logger.debug(
            "Added policy rule %s: tool=%s decision=%s priority=%d modes=%s source=%s",
            rule.id,
            rule.tool_name or "*",
            rule.decision.value,
            rule.priority,
            sorted(m.value for m in rule.modes) or "all",
            rule.source,
        )

    def add_rules(self, rules: list[PolicyRule]) -> None:
        """Append several rules in order."""
        for rule in rules:
            self.add_rule(rule)

    def evaluate(
        self,
        tool_name: str,
        args: dict[str, Any] | str,
        mode: ApprovalMode,
    ) -> PolicyDecision:
        """
        Evaluate a proposed tool call.

        Args:
            tool_name: The tool being called
            args: Call arguments, as a dict or already serialized
            mode: The currently active approval mode

        Returns:
            PolicyDecision from the winning rule, or ASK_USER if none matched
        """
        serialized = args if isinstance(args, str) else serialize_args(args)
        winner = self.find_matching_rule(tool_name, serialized, mode)
        if winner is None:
            return PolicyDecision.default()
        return PolicyDecision.from_rule(winner)

    def find_matching_rule(
        self,
        tool_name: str,
        serialized_args: str,
        mode: ApprovalMode,
    ) -> PolicyRule | None:
        """Return the rule that decides this call, or None."""
        winner: PolicyRule | None = None
        for rule in self.rules:
            if not rule.applies_to(tool_name, mode):
                continue
            if not rule.matches_args(serialized_args):
                continue
            # >= so that a later rule with equal priority replaces the earlier one
            if winner is None or rule.priority >= winner.priority:
                winner = rule
        return winner

    def rules_from_source(self, source: str) -> list[PolicyRule]:
        """List rules added under a given source tag."""
        return [rule for rule in self.rules if rule.source == source]

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"<PolicyStore: {len(self)} rules>"


# Process-wide store shared by every tool invocation, seeded with the built-in rules
default_policy_store = PolicyStore(default_rules())
