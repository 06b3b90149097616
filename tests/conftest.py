"""
Pytest configuration and fixtures for Tollgate tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from tollgate.config import Settings
from tollgate.model.base import FunctionCall, Message, ModelClient, ModelResponse
from tollgate.policy.defaults import default_rules
from tollgate.policy.engine import PolicyStore


class FakeClock:
    """Manually advanced clock for rate limiter tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedModel(ModelClient):
    """Model client that replays a fixed list of responses."""

    def __init__(self, responses: list[ModelResponse]) -> None:
        self.responses = list(responses)
        self.calls: list[list[Message]] = []

    def generate(self, messages: list[Message], tools: list[dict[str, Any]]) -> ModelResponse:
        self.calls.append(list(messages))
        if not self.responses:
            return ModelResponse(text="Done")
        return self.responses.pop(0)


def call(name: str, **args: Any) -> ModelResponse:
    """Shorthand for a model response requesting one action."""
    return ModelResponse(function_call=FunctionCall(name=name, args=args))


def make_page(width: int = 1000, height: int = 800, tree: str = "- main") -> MagicMock:
    """A Playwright page double with a fixed viewport and ARIA tree."""
    page = MagicMock()
    page.viewport_size = {"width": width, "height": height}
    page.url = "https://example.com/"
    page.screenshot.return_value = b"\x89PNG fake"
    page.locator.return_value.aria_snapshot.return_value = tree
    page.is_closed.return_value = False
    return page


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def policy_store() -> PolicyStore:
    """A fresh store holding the built-in default rules."""
    return PolicyStore(default_rules())


@pytest.fixture
def settings(temp_dir: Path, policy_store: PolicyStore) -> Settings:
    """Runtime settings rooted at temp_dir with an isolated policy store."""
    return Settings(target_dir=temp_dir, policy_store=policy_store)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def page() -> MagicMock:
    return make_page()


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a small Tollgate config for testing."""
    return """
approval_mode: default
rules:
  - tool_name: write_file
    args_pattern: '"file_path":"/etc/'
    decision: deny
    priority: 100
browser:
  allowed_domains:
    - "https://*.test.org"
  headless: true
  rate_limits:
    max_actions_per_minute: 30
    max_navigations_per_minute: 5
"""


@pytest.fixture
def page_factory():
    """Build page doubles with a custom viewport or tree."""
    return make_page


@pytest.fixture
def scripted_model():
    """The ScriptedModel class, for building replayed conversations."""
    return ScriptedModel


@pytest.fixture
def model_call():
    """The call() helper for building function-call responses."""
    return call
