"""
Unit tests for schema models and config loading.

Tests:
    - PolicyRule filters and immutability
    - PolicyDecision constructors
    - RuleSpec validation and conversion
    - Browser/model setting defaults
    - ActionResult payloads
    - YAML loading
"""

import re
from pathlib import Path

import pytest
from pydantic import ValidationError

from tollgate.errors import ConfigLoadError
from tollgate.schema import (
    STATIC_RULE_PRIORITY,
    ActionResult,
    ApprovalMode,
    BrowserSettings,
    Decision,
    ModelSettings,
    PolicyDecision,
    PolicyRule,
    RuleSpec,
    TollgateConfig,
    load_config,
    load_config_from_string,
)


class TestPolicyRule:
    def test_defaults(self) -> None:
        rule = PolicyRule(decision=Decision.DENY)

        assert rule.tool_name is None
        assert rule.args_pattern is None
        assert rule.priority == STATIC_RULE_PRIORITY
        assert rule.modes == frozenset()
        assert rule.source == "static"
        assert len(rule.id) == 12

    def test_ids_unique(self) -> None:
        assert PolicyRule(decision=Decision.DENY).id != PolicyRule(decision=Decision.DENY).id

    def test_frozen(self) -> None:
        rule = PolicyRule(decision=Decision.DENY)

        with pytest.raises(ValidationError):
            rule.priority = 100

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicyRule(decision=Decision.DENY, scope="all")

    def test_applies_to(self) -> None:
        rule = PolicyRule(
            tool_name="write_file", decision=Decision.DENY, modes=frozenset({ApprovalMode.PLAN})
        )

        assert rule.applies_to("write_file", ApprovalMode.PLAN)
        assert not rule.applies_to("write_file", ApprovalMode.DEFAULT)
        assert not rule.applies_to("replace", ApprovalMode.PLAN)

    def test_matches_args(self) -> None:
        rule = PolicyRule(decision=Decision.DENY, args_pattern=re.compile("/etc/"))

        assert rule.matches_args('{"file_path":"/etc/passwd"}')
        assert not rule.matches_args('{"file_path":"/home/x"}')


class TestPolicyDecision:
    def test_default(self) -> None:
        decision = PolicyDecision.default()

        assert decision.decision == Decision.ASK_USER
        assert decision.reason == "No matching rule; asking the user"
        assert decision.rule_id is None

    def test_from_rule(self) -> None:
        rule = PolicyRule(decision=Decision.ALLOW, source="config")

        decision = PolicyDecision.from_rule(rule)

        assert decision.allowed
        assert decision.reason == f"Matched rule {rule.id} (priority 70, source config)"


class TestRuleSpec:
    def test_to_rule(self) -> None:
        spec = RuleSpec(
            tool_name="write_file",
            args_pattern='"file_path":"/etc/',
            decision="deny",
            priority=100,
            modes=["plan", "default"],
        )

        rule = spec.to_rule()

        assert rule.args_pattern.pattern == '"file_path":"/etc/'
        assert rule.decision == Decision.DENY
        assert rule.modes == frozenset({ApprovalMode.PLAN, ApprovalMode.DEFAULT})
        assert rule.source == "config"

    def test_invalid_regex(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            RuleSpec(decision="deny", args_pattern="(unclosed")

        assert "Invalid args_pattern" in str(exc_info.value)

    def test_mode_by_value(self) -> None:
        assert RuleSpec(decision="allow", modes=["autoEdit"]).modes == [ApprovalMode.AUTO_EDIT]


class TestSettingsDefaults:
    def test_browser(self) -> None:
        settings = BrowserSettings()

        assert settings.allowed_domains == []
        assert settings.headless is False
        assert settings.max_turns == 20
        assert settings.rate_limits.max_actions_per_minute == 60
        assert settings.rate_limits.max_navigations_per_minute == 10

    def test_model(self) -> None:
        settings = ModelSettings()

        assert settings.base_url == "http://localhost:11434"
        assert settings.timeout_seconds == 120.0

    def test_max_turns_positive(self) -> None:
        with pytest.raises(ValidationError):
            BrowserSettings(max_turns=0)


class TestActionResult:
    def test_ok_payload(self) -> None:
        result = ActionResult.ok("Clicked", url="https://a/")

        assert result.succeeded
        assert result.to_payload() == {"output": "Clicked", "url": "https://a/"}

    def test_fail_payload(self) -> None:
        result = ActionResult.fail("boom")

        assert not result.succeeded
        assert result.to_payload() == {"error": "boom"}


class TestLoadConfig:
    def test_from_string(self, sample_config_yaml: str) -> None:
        config = load_config_from_string(sample_config_yaml)

        assert config.approval_mode == ApprovalMode.DEFAULT
        assert config.rules[0].priority == 100
        assert config.browser.headless is True
        assert config.browser.rate_limits.max_navigations_per_minute == 5

    def test_empty_document(self) -> None:
        assert load_config_from_string("") == TollgateConfig()

    def test_from_file(self, temp_dir: Path, sample_config_yaml: str) -> None:
        path = temp_dir / "tollgate.yaml"
        path.write_text(sample_config_yaml)

        assert load_config(path).browser.allowed_domains == ["https://*.test.org"]

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(temp_dir / "missing.yaml")

        assert exc_info.value.path.endswith("missing.yaml")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigLoadError):
            load_config_from_string("rules: [unclosed")

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigLoadError):
            load_config_from_string("aproval_mode: plan")
