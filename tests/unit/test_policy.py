"""
Unit tests for the Policy Store.

Tests cover:
- Default ASK_USER when nothing matches
- Tool, mode and argument filtering
- Priority ordering and tie-breaking
- Argument serialization
- Built-in default rules
"""

import re

import pytest

from tollgate.policy import (
    FILE_MUTATING_TOOLS,
    READ_ONLY_TOOLS,
    PolicyStore,
    call_scope_pattern,
    default_rules,
    serialize_args,
)
from tollgate.schema import (
    ALWAYS_ALLOW_PRIORITY,
    DYNAMIC_RULE_PRIORITY,
    STATIC_RULE_PRIORITY,
    ApprovalMode,
    Decision,
    PolicyRule,
)


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def empty_store() -> PolicyStore:
    """A store with no rules at all."""
    return PolicyStore()


def rule(decision: Decision, tool: str | None = "write_file", **kwargs) -> PolicyRule:
    pattern = kwargs.pop("pattern", None)
    return PolicyRule(
        tool_name=tool,
        decision=decision,
        args_pattern=re.compile(pattern) if pattern else None,
        **kwargs,
    )


# =============================================================================
# Serialization Tests
# =============================================================================


class TestSerializeArgs:
    """Tests for the string form rules are matched against."""

    def test_compact_separators(self) -> None:
        assert serialize_args({"file_path": "/a"}) == '{"file_path":"/a"}'

    def test_keys_sorted(self) -> None:
        first = serialize_args({"b": 1, "a": 2})
        second = serialize_args({"a": 2, "b": 1})
        assert first == second == '{"a":2,"b":1}'

    def test_empty_args(self) -> None:
        assert serialize_args({}) == "{}"

    def test_non_json_values_stringified(self) -> None:
        from pathlib import Path

        assert serialize_args({"p": Path("/x")}) == '{"p":"/x"}'


class TestCallScopePattern:
    """Scope of a remembered approval."""

    def test_file_call_scoped_to_that_file(self) -> None:
        pattern = call_scope_pattern({"file_path": "/w/a.md", "content": "x"})

        assert pattern.search(serialize_args({"file_path": "/w/a.md", "content": "other"}))
        assert not pattern.search(serialize_args({"file_path": "/w/a.md.bak"}))
        assert not pattern.search(serialize_args({"file_path": "/etc/passwd"}))

    def test_path_in_other_argument_does_not_match(self) -> None:
        pattern = call_scope_pattern({"file_path": "/w/a.md"})

        smuggled = serialize_args({"content": '"file_path":"/w/a.md"', "file_path": "/etc/x"})
        assert not pattern.search(smuggled)

    def test_other_calls_scoped_to_exact_args(self) -> None:
        pattern = call_scope_pattern({"task": "read"})

        assert pattern.search(serialize_args({"task": "read"}))
        assert not pattern.search(serialize_args({"task": "read", "extra": 1}))

    def test_empty_args(self) -> None:
        pattern = call_scope_pattern({})

        assert pattern.search("{}")
        assert not pattern.search('{"a":1}')


# =============================================================================
# Evaluation Tests
# =============================================================================


class TestDefaultDecision:
    """No matching rule must never mean ALLOW."""

    def test_empty_store_asks_user(self, empty_store: PolicyStore) -> None:
        decision = empty_store.evaluate("write_file", {"file_path": "/x"}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ASK_USER
        assert decision.rule_id is None
        assert not decision.allowed

    def test_rule_for_other_tool_ignored(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW, tool="read_file"))

        decision = empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ASK_USER

    def test_rule_for_other_mode_ignored(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY, modes=frozenset({ApprovalMode.PLAN})))

        decision = empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ASK_USER

    def test_non_matching_pattern_ignored(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW, pattern='"file_path":"/allowed'))

        decision = empty_store.evaluate("write_file", {"file_path": "/other"}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ASK_USER


class TestMatching:
    """Tests for rule filters."""

    def test_wildcard_tool_matches_any_tool(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY, tool=None))

        assert empty_store.evaluate("anything", {}, ApprovalMode.YOLO).decision == Decision.DENY

    def test_empty_modes_matches_every_mode(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW))

        for mode in ApprovalMode:
            assert empty_store.evaluate("write_file", {}, mode).decision == Decision.ALLOW

    def test_pattern_searched_not_anchored(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW, pattern="secret"))

        decision = empty_store.evaluate(
            "write_file", {"file_path": "/tmp/secret.txt"}, ApprovalMode.DEFAULT
        )

        assert decision.decision == Decision.ALLOW

    def test_prerendered_string_args(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW, pattern='"file_path":"/a"'))

        decision = empty_store.evaluate("write_file", '{"file_path":"/a"}', ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ALLOW

    def test_decision_reports_winning_rule(self, empty_store: PolicyStore) -> None:
        r = rule(Decision.DENY, source="config")
        empty_store.add_rule(r)

        decision = empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT)

        assert decision.rule_id == r.id
        assert decision.source == "config"
        assert r.id in decision.reason


class TestPriority:
    """Tests for precedence between matching rules."""

    def test_higher_priority_wins(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.ALLOW, priority=DYNAMIC_RULE_PRIORITY))
        empty_store.add_rule(rule(Decision.DENY, priority=STATIC_RULE_PRIORITY))

        assert empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT).decision == Decision.ALLOW

    def test_higher_priority_wins_regardless_of_order(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY, priority=DYNAMIC_RULE_PRIORITY))
        empty_store.add_rule(rule(Decision.ALLOW, priority=STATIC_RULE_PRIORITY))

        assert empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT).decision == Decision.DENY

    def test_remembered_approval_ranks_below_static(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY, priority=STATIC_RULE_PRIORITY))
        empty_store.add_rule(rule(Decision.ALLOW, priority=ALWAYS_ALLOW_PRIORITY))

        assert empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT).decision == Decision.DENY

    def test_tie_goes_to_most_recent_rule(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY))
        later = rule(Decision.ALLOW)
        empty_store.add_rule(later)

        decision = empty_store.evaluate("write_file", {}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ALLOW
        assert decision.rule_id == later.id

    def test_evaluation_is_deterministic(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY))
        empty_store.add_rule(rule(Decision.ALLOW, pattern="x"))

        decisions = {
            empty_store.evaluate("write_file", {"a": "x"}, ApprovalMode.DEFAULT).rule_id
            for _ in range(5)
        }

        assert len(decisions) == 1


class TestStoreBookkeeping:
    """Tests for rule listing helpers."""

    def test_rules_snapshot_in_insertion_order(self, empty_store: PolicyStore) -> None:
        first, second = rule(Decision.DENY), rule(Decision.ALLOW)
        empty_store.add_rules([first, second])

        assert empty_store.rules == (first, second)
        assert len(empty_store) == 2

    def test_snapshot_does_not_change_with_later_adds(self, empty_store: PolicyStore) -> None:
        snapshot = empty_store.rules
        empty_store.add_rule(rule(Decision.DENY))

        assert snapshot == ()

    def test_rules_from_source(self, empty_store: PolicyStore) -> None:
        empty_store.add_rule(rule(Decision.DENY, source="default"))
        mine = rule(Decision.ALLOW, source="PlanMode")
        empty_store.add_rule(mine)

        assert empty_store.rules_from_source("PlanMode") == [mine]

    def test_repr(self, empty_store: PolicyStore) -> None:
        assert repr(empty_store) == "<PolicyStore: 0 rules>"


# =============================================================================
# Default Rule Tests
# =============================================================================


class TestDefaultRules:
    """Tests for the built-in rule set."""

    def test_plan_mode_denies_file_mutation(self, policy_store: PolicyStore) -> None:
        for tool in FILE_MUTATING_TOOLS:
            decision = policy_store.evaluate(tool, {"file_path": "/x"}, ApprovalMode.PLAN)
            assert decision.decision == Decision.DENY

    def test_default_mode_asks_for_file_mutation(self, policy_store: PolicyStore) -> None:
        decision = policy_store.evaluate("write_file", {"file_path": "/x"}, ApprovalMode.DEFAULT)

        assert decision.decision == Decision.ASK_USER

    def test_auto_edit_allows_file_mutation(self, policy_store: PolicyStore) -> None:
        decision = policy_store.evaluate("replace", {"file_path": "/x"}, ApprovalMode.AUTO_EDIT)

        assert decision.decision == Decision.ALLOW

    def test_read_only_tools_allowed_in_plan(self, policy_store: PolicyStore) -> None:
        for tool in READ_ONLY_TOOLS:
            assert policy_store.evaluate(tool, {}, ApprovalMode.PLAN).decision == Decision.ALLOW

    def test_default_rules_are_fresh_lists(self) -> None:
        first = default_rules()
        first.clear()

        assert default_rules()

    def test_default_rules_tagged(self) -> None:
        assert {r.source for r in default_rules()} == {"default"}
