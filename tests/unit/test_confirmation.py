"""
Unit tests for the confirmation protocol.

Tests cover:
- Policy short-circuits (ALLOW, DENY)
- The PENDING -> CONFIRMED / CANCELLED transitions
- Single-assignment of the outcome
- Abort handling before execution
- The deferred proceed_always rule
"""

import threading

import pytest

from tollgate.confirmation import ConfirmationMediator, InvocationState
from tollgate.errors import (
    ConfirmationAlreadyResolvedError,
    ConfirmationError,
    ConfirmationRequiredError,
    PolicyDeniedError,
)
from tollgate.policy.engine import PolicyStore
from tollgate.schema import (
    ALWAYS_ALLOW_PRIORITY,
    ApprovalMode,
    ConfirmationOutcome,
    Decision,
    PolicyRule,
)


class ModeBox:
    """Mutable approval mode for mode_provider callbacks."""

    def __init__(self, mode: ApprovalMode = ApprovalMode.DEFAULT) -> None:
        self.mode = mode

    def __call__(self) -> ApprovalMode:
        return self.mode


@pytest.fixture
def store() -> PolicyStore:
    return PolicyStore()


@pytest.fixture
def mode() -> ModeBox:
    return ModeBox()


def make_mediator(store: PolicyStore, mode: ModeBox, tool: str = "write_file") -> ConfirmationMediator:
    return ConfirmationMediator(store, tool, {"file_path": "/w/a.txt"}, mode, display_name="WriteFile")


# =============================================================================
# Policy Short-Circuit Tests
# =============================================================================


class TestPolicyShortCircuit:
    """ALLOW and DENY never reach the user."""

    def test_allow_skips_confirmation(self, store: PolicyStore, mode: ModeBox) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.ALLOW))
        mediator = make_mediator(store, mode)

        assert mediator.request_confirmation("t", "p") is False
        assert mediator.state == InvocationState.EXECUTABLE
        assert mediator.begin_execution() is True

    def test_deny_raises_with_display_name(self, store: PolicyStore, mode: ModeBox) -> None:
        deny = PolicyRule(tool_name="write_file", decision=Decision.DENY)
        store.add_rule(deny)
        mediator = make_mediator(store, mode)

        with pytest.raises(PolicyDeniedError) as exc_info:
            mediator.request_confirmation("t", "p")

        assert exc_info.value.message == 'Tool execution for "WriteFile" denied by policy.'
        assert exc_info.value.rule_id == deny.id
        assert mediator.state == InvocationState.DENIED

    def test_denied_execution_raises_again(self, store: PolicyStore, mode: ModeBox) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.DENY))
        mediator = make_mediator(store, mode)
        with pytest.raises(PolicyDeniedError):
            mediator.request_confirmation("t", "p")

        with pytest.raises(PolicyDeniedError):
            mediator.begin_execution()
        with pytest.raises(PolicyDeniedError):
            mediator.request_confirmation("t", "p")

    def test_execute_without_confirmation_allowed_by_policy(
        self, store: PolicyStore, mode: ModeBox
    ) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.ALLOW))
        mediator = make_mediator(store, mode)

        assert mediator.begin_execution() is True
        assert mediator.state == InvocationState.EXECUTABLE

    def test_execute_without_confirmation_denied(self, store: PolicyStore, mode: ModeBox) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.DENY))
        mediator = make_mediator(store, mode)

        with pytest.raises(PolicyDeniedError):
            mediator.begin_execution()

    def test_execute_without_confirmation_requires_it(
        self, store: PolicyStore, mode: ModeBox
    ) -> None:
        mediator = make_mediator(store, mode)

        with pytest.raises(ConfirmationRequiredError):
            mediator.begin_execution()

    def test_decision_recorded(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        assert mediator.decision is None

        mediator.request_confirmation("t", "p")

        assert mediator.decision is not None
        assert mediator.decision.decision == Decision.ASK_USER


# =============================================================================
# Pending Confirmation Tests
# =============================================================================


class TestPendingConfirmation:
    """Tests for the ASK_USER path."""

    def test_request_carries_text(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)

        request = mediator.request_confirmation("Confirm Write", "Write /w/a.txt", {"k": "v"})

        assert request is not False
        assert request.tool_name == "write_file"
        assert request.title == "Confirm Write"
        assert request.prompt == "Write /w/a.txt"
        assert request.details == {"k": "v"}
        assert mediator.state == InvocationState.PENDING

    def test_repeated_request_returns_same_request(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)

        first = mediator.request_confirmation("t", "p")
        second = mediator.request_confirmation("t", "p")

        assert first is second

    def test_pending_execution_raises(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p")

        with pytest.raises(ConfirmationRequiredError):
            mediator.begin_execution()

    def test_proceed_once(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        request = mediator.request_confirmation("t", "p")

        request.on_confirm(ConfirmationOutcome.PROCEED_ONCE)

        assert mediator.state == InvocationState.CONFIRMED
        assert mediator.outcome == ConfirmationOutcome.PROCEED_ONCE
        assert mediator.begin_execution() is True
        assert mediator.state == InvocationState.EXECUTABLE
        assert len(store) == 0

    def test_cancel(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        request = mediator.request_confirmation("t", "p")

        request.on_confirm(ConfirmationOutcome.CANCEL)

        assert mediator.state == InvocationState.CANCELLED
        assert mediator.begin_execution() is False

    def test_outcome_accepts_enum_value_string(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p")

        mediator.resolve("proceed_once")

        assert mediator.outcome == ConfirmationOutcome.PROCEED_ONCE


class TestSingleAssignment:
    """The outcome may be delivered exactly once."""

    def test_second_resolve_raises(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        request = mediator.request_confirmation("t", "p")
        request.on_confirm(ConfirmationOutcome.PROCEED_ONCE)

        with pytest.raises(ConfirmationAlreadyResolvedError):
            request.on_confirm(ConfirmationOutcome.CANCEL)

        assert mediator.outcome == ConfirmationOutcome.PROCEED_ONCE

    def test_resolve_without_request_raises(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)

        with pytest.raises(ConfirmationError) as exc_info:
            mediator.resolve(ConfirmationOutcome.PROCEED_ONCE)

        assert "No pending confirmation" in exc_info.value.message

    def test_request_after_resolution_raises(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.CANCEL)

        with pytest.raises(ConfirmationAlreadyResolvedError):
            mediator.request_confirmation("t", "p")


# =============================================================================
# Abort Tests
# =============================================================================


class TestAbort:
    """An abort before execution always wins over a proceed."""

    def test_abort_after_proceed_cancels(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ONCE)
        abort = threading.Event()
        abort.set()

        assert mediator.begin_execution(abort) is False
        assert mediator.state == InvocationState.CANCELLED

    def test_abort_with_allow_policy_cancels(self, store: PolicyStore, mode: ModeBox) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.ALLOW))
        mediator = make_mediator(store, mode)
        abort = threading.Event()
        abort.set()

        assert mediator.begin_execution(abort) is False

    def test_abort_does_not_override_deny(self, store: PolicyStore, mode: ModeBox) -> None:
        store.add_rule(PolicyRule(tool_name="write_file", decision=Decision.DENY))
        mediator = make_mediator(store, mode)
        with pytest.raises(PolicyDeniedError):
            mediator.request_confirmation("t", "p")
        abort = threading.Event()
        abort.set()

        with pytest.raises(PolicyDeniedError):
            mediator.begin_execution(abort)

    def test_unset_signal_is_ignored(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ONCE)

        assert mediator.begin_execution(threading.Event()) is True


# =============================================================================
# Proceed Always Tests
# =============================================================================


class TestProceedAlways:
    """proceed_always leaves a rule behind, but only once execution starts."""

    def test_rule_added_on_execution(self, store: PolicyStore, mode: ModeBox) -> None:
        mode.mode = ApprovalMode.AUTO_EDIT
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ALWAYS)
        assert len(store) == 0

        assert mediator.begin_execution() is True

        [added] = store.rules
        assert added.tool_name == "write_file"
        assert added.args_pattern.search('{"file_path":"/w/a.txt"}')
        assert not added.args_pattern.search('{"file_path":"/w/b.txt"}')
        assert added.decision == Decision.ALLOW
        assert added.priority == ALWAYS_ALLOW_PRIORITY
        assert added.modes == frozenset({ApprovalMode.AUTO_EDIT})
        assert added.source == "ProceedAlways"

    def test_next_invocation_skips_confirmation(self, store: PolicyStore, mode: ModeBox) -> None:
        first = make_mediator(store, mode)
        first.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ALWAYS)
        first.begin_execution()

        second = make_mediator(store, mode)

        assert second.request_confirmation("t", "p") is False

    def test_rule_scoped_to_mode(self, store: PolicyStore, mode: ModeBox) -> None:
        first = make_mediator(store, mode)
        first.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ALWAYS)
        first.begin_execution()

        mode.mode = ApprovalMode.PLAN
        second = make_mediator(store, mode)

        assert second.request_confirmation("t", "p") is not False

    def test_aborted_proceed_always_adds_no_rule(self, store: PolicyStore, mode: ModeBox) -> None:
        mediator = make_mediator(store, mode)
        mediator.request_confirmation("t", "p").on_confirm(ConfirmationOutcome.PROCEED_ALWAYS)
        abort = threading.Event()
        abort.set()

        assert mediator.begin_execution(abort) is False
        assert len(store) == 0

    def test_repr(self, store: PolicyStore, mode: ModeBox) -> None:
        assert repr(make_mediator(store, mode)) == (
            "<ConfirmationMediator: write_file state=init>"
        )
