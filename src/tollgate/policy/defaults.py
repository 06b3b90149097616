"""
Built-in static rules.

Loaded once at startup at the baseline priority. Plan mode is read-only:
the content-mutating tools are denied there, and only a higher-priority
grant (see DynamicRuleInjector) can reopen a specific path.
"""

from tollgate.schema import STATIC_RULE_PRIORITY, ApprovalMode, Decision, PolicyRule

FILE_MUTATING_TOOLS = ("write_file", "replace")
READ_ONLY_TOOLS = ("read_file", "list_directory", "glob", "search_file_content")


def default_rules() -> list[PolicyRule]:
    """Return a fresh list of the built-in rules."""
    plan = frozenset({ApprovalMode.PLAN})
    rules = [
        PolicyRule(
            tool_name=name,
            decision=Decision.DENY,
            priority=STATIC_RULE_PRIORITY,
            modes=plan,
            source="default",
        )
        for name in FILE_MUTATING_TOOLS
    ]
    rules.extend(
        PolicyRule(
            tool_name=name,
            decision=Decision.ALLOW,
            priority=STATIC_RULE_PRIORITY,
            source="default",
        )
        for name in READ_ONLY_TOOLS
    )
    # Auto-edit mode trusts file edits without a prompt
    rules.extend(
        PolicyRule(
            tool_name=name,
            decision=Decision.ALLOW,
            priority=STATIC_RULE_PRIORITY - 10,
            modes=frozenset({ApprovalMode.AUTO_EDIT}),
            source="default",
        )
        for name in FILE_MUTATING_TOOLS
    )
    return rules
