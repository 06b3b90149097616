"""
Integration tests for the plan-mode workflow.

Drives real tools through the registry, the confirmation protocol and the
shared policy store, the way an agent host would:

    1. enter_plan_mode with a writable path
    2. write_file inside that path runs without asking
    3. write_file elsewhere is denied
    4. leaving plan mode makes the grant inert again
"""

from pathlib import Path

import pytest

from tollgate.config import Settings
from tollgate.errors import PolicyDeniedError
from tollgate.schema import ApprovalMode, ConfirmationOutcome
from tollgate.tools import register_builtin_tools
from tollgate.tools.registry import ToolRegistry


@pytest.fixture
def registry() -> ToolRegistry:
    return register_builtin_tools(ToolRegistry())


def run(registry: ToolRegistry, name: str, args: dict, settings: Settings, answer=None):
    """Run one tool call the way a host would: confirm if asked, then execute."""
    invocation = registry.get(name).build(args, settings)
    request = invocation.should_confirm_execute()
    if request:
        assert answer is not None, f"{name} unexpectedly asked for confirmation"
        request.on_confirm(answer)
    return invocation.execute()


class TestPlanModeFlow:
    def test_scoped_write_access(
        self, registry: ToolRegistry, settings: Settings, temp_dir: Path
    ) -> None:
        entered = run(
            registry,
            "enter_plan_mode",
            {"reason": "Design", "path": "conductor/tracks/feature-1"},
            settings,
            ConfirmationOutcome.PROCEED_ONCE,
        )
        assert entered.succeeded
        assert settings.approval_mode == ApprovalMode.PLAN

        written = run(
            registry,
            "write_file",
            {"file_path": "conductor/tracks/feature-1/plan.md", "content": "# Plan"},
            settings,
        )
        assert written.succeeded
        assert (temp_dir / "conductor/tracks/feature-1/plan.md").read_text() == "# Plan"

        edited = run(
            registry,
            "replace",
            {
                "file_path": str(temp_dir / "conductor/tracks/feature-1/plan.md"),
                "old_string": "# Plan",
                "new_string": "# Plan v2",
            },
            settings,
        )
        assert edited.succeeded

        with pytest.raises(PolicyDeniedError):
            run(registry, "write_file", {"file_path": "src/app.py", "content": "x"}, settings)
        assert not (temp_dir / "src/app.py").exists()

    def test_sibling_track_denied(self, registry: ToolRegistry, settings: Settings) -> None:
        run(
            registry,
            "enter_plan_mode",
            {"path": "conductor/tracks/feature-1"},
            settings,
            ConfirmationOutcome.PROCEED_ONCE,
        )

        with pytest.raises(PolicyDeniedError):
            run(
                registry,
                "write_file",
                {"file_path": "conductor/tracks/feature-10/plan.md", "content": "x"},
                settings,
            )

    def test_grant_inert_after_leaving_plan_mode(
        self, registry: ToolRegistry, settings: Settings
    ) -> None:
        run(registry, "enter_plan_mode", {"path": "plans"}, settings, ConfirmationOutcome.PROCEED_ONCE)
        settings.set_approval_mode(ApprovalMode.DEFAULT)

        invocation = registry.get("write_file").build(
            {"file_path": "plans/p.md", "content": "x"}, settings
        )

        assert invocation.should_confirm_execute() is not False

    def test_plan_mode_without_path_is_read_only(
        self, registry: ToolRegistry, settings: Settings
    ) -> None:
        run(registry, "enter_plan_mode", {}, settings, ConfirmationOutcome.PROCEED_ONCE)

        with pytest.raises(PolicyDeniedError) as exc_info:
            run(registry, "replace", {"file_path": "a", "old_string": "a", "new_string": "b"}, settings)

        assert exc_info.value.message == 'Tool execution for "Edit" denied by policy.'

    def test_proceed_always_on_plan_mode(self, registry: ToolRegistry, settings: Settings) -> None:
        run(registry, "enter_plan_mode", {}, settings, ConfirmationOutcome.PROCEED_ALWAYS)

        # Approval was remembered for the mode that was active when it was given
        settings.set_approval_mode(ApprovalMode.DEFAULT)
        again = run(registry, "enter_plan_mode", {}, settings)

        assert again.succeeded
