"""Policy evaluation and runtime rule injection."""

from tollgate.policy.defaults import FILE_MUTATING_TOOLS, READ_ONLY_TOOLS, default_rules
from tollgate.policy.engine import PolicyStore, call_scope_pattern, default_policy_store, serialize_args
from tollgate.policy.injector import DynamicRuleInjector, path_scope_pattern, resolve_path

__all__ = [
    "FILE_MUTATING_TOOLS",
    "DynamicRuleInjector",
    "PolicyStore",
    "READ_ONLY_TOOLS",
    "call_scope_pattern",
    "default_policy_store",
    "default_rules",
    "path_scope_pattern",
    "resolve_path",
    "serialize_args",
]
