"""
Confirmation protocol for Tollgate.

ConfirmationMediator wraps a PolicyStore decision in a human-in-the-loop
step. Each tool invocation owns one mediator.

State machine:

    INIT --ALLOW-----> EXECUTABLE
    INIT --DENY------> DENIED      (PolicyDeniedError, body never runs)
    INIT --ASK_USER--> PENDING
    PENDING --proceed_once / proceed_always--> CONFIRMED --begin--> EXECUTABLE
    PENDING --cancel--> CANCELLED  (terminal, execute short-circuits)

The outcome is single-assignment: resolving twice raises. An abort signal
set before the body starts turns any non-denied state into CANCELLED, so a
cancellation that races a "proceed" still produces no side effect.
Deferred side effects of the outcome (the proceed_always rule) are only
applied once execution actually begins. That rule covers the same call
(the same file for file tools) and ranks below static rules, so it never
overrides a configured DENY.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from tollgate.errors import (
    ConfirmationAlreadyResolvedError,
    ConfirmationError,
    ConfirmationRequiredError,
    PolicyDeniedError,
)
from tollgate.policy.engine import PolicyStore, call_scope_pattern
from tollgate.schema import (
    ALWAYS_ALLOW_PRIORITY,
    ApprovalMode,
    ConfirmationOutcome,
    Decision,
    PolicyDecision,
    PolicyRule,
)

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    """Where an invocation is in the confirmation protocol."""

    INIT = "init"
    EXECUTABLE = "executable"
    DENIED = "denied"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ConfirmationRequest:
    """
    A pending question for the user.

    Attributes:
        tool_name: Tool asking for confirmation
        title: Short heading shown to the user
        prompt: Human-readable explanation of what will happen
        on_confirm: Callback that delivers the user's outcome (exactly once)
        details: Extra key/values a UI may render
    """

    tool_name: str
    title: str
    prompt: str
    on_confirm: Callable[[ConfirmationOutcome], None]
    details: dict[str, Any] = field(default_factory=dict)


def is_aborted(abort_signal: threading.Event | None) -> bool:
    return abort_signal is not None and abort_signal.is_set()


class ConfirmationMediator:
    """
    Per-invocation confirmation state machine.

    Usage:
        mediator = ConfirmationMediator(store, "write_file", args, lambda: mode)
        request = mediator.request_confirmation("Write file", "Write to /x?")
        if request:
            request.on_confirm(ask_user())
        if mediator.begin_execution(abort_signal):
            ...  # run the tool body
    """

    def __init__(
        self,
        policy_store: PolicyStore,
        tool_name: str,
        args: dict[str, Any],
        mode_provider: Callable[[], ApprovalMode],
        display_name: str | None = None,
    ) -> None:
        self.policy_store = policy_store
        self.tool_name = tool_name
        self.display_name = display_name or tool_name
        self.args = args
        self._mode_provider = mode_provider
        self._state = InvocationState.INIT
        self._outcome: ConfirmationOutcome | None = None
        self._decision: PolicyDecision | None = None
        self._pending: ConfirmationRequest | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def outcome(self) -> ConfirmationOutcome | None:
        return self._outcome

    @property
    def decision(self) -> PolicyDecision | None:
        """The policy decision, once evaluated."""
        return self._decision

    def _evaluate(self) -> PolicyDecision:
        self._decision = self.policy_store.evaluate(
            self.tool_name, self.args, self._mode_provider()
        )
        logger.debug(
            "Policy for %s: %s (%s)",
            self.tool_name,
            self._decision.decision.value,
            self._decision.reason,
        )
        return self._decision

    def _deny(self, decision: PolicyDecision) -> PolicyDeniedError:
        self._state = InvocationState.DENIED
        logger.info("Denied %s by rule %s", self.tool_name, decision.rule_id)
        return PolicyDeniedError(
            tool=self.display_name,
            reason=decision.reason,
            rule_id=decision.rule_id,
        )

    def request_confirmation(
        self,
        title: str,
        prompt: str,
        details: dict[str, Any] | None = None,
    ) -> ConfirmationRequest | Literal[False]:
        """
        Consult the policy and, if needed, produce a confirmation request.

        Returns:
            False when the policy allows the call outright, otherwise a
            ConfirmationRequest the caller must resolve

        Raises:
            PolicyDeniedError: If the policy denies the call
        """
        if self._state == InvocationState.EXECUTABLE:
            return False
        if self._state == InvocationState.PENDING and self._pending is not None:
            return self._pending
        if self._state == InvocationState.DENIED and self._decision is not None:
            raise self._deny(self._decision)
        if self._state != InvocationState.INIT:
            raise ConfirmationAlreadyResolvedError(tool=self.tool_name, state=self._state.value)

        decision = self._evaluate()
        if decision.decision == Decision.ALLOW:
            self._state = InvocationState.EXECUTABLE
            return False
        if decision.decision == Decision.DENY:
            raise self._deny(decision)

        self._state = InvocationState.PENDING
        self._pending = ConfirmationRequest(
            tool_name=self.tool_name,
            title=title,
            prompt=prompt,
            on_confirm=self.resolve,
            details=dict(details or {}),
        )
        return self._pending

    def resolve(self, outcome: ConfirmationOutcome) -> None:
        """
        Deliver the user's answer.

        Raises:
            ConfirmationAlreadyResolvedError: If an outcome was already given
            ConfirmationError: If there is no pending confirmation
        """
        outcome = ConfirmationOutcome(outcome)
        with self._lock:
            if self._outcome is not None:
                raise ConfirmationAlreadyResolvedError(
                    tool=self.tool_name, state=self._state.value
                )
            if self._state != InvocationState.PENDING:
                raise ConfirmationError(
                    message=f"No pending confirmation for {self.tool_name}",
                    tool=self.tool_name,
                    state=self._state.value,
                )
            self._outcome = outcome
            if outcome == ConfirmationOutcome.CANCEL:
                self._state = InvocationState.CANCELLED
            else:
                self._state = InvocationState.CONFIRMED
        logger.debug("Confirmation for %s resolved: %s", self.tool_name, outcome.value)

    def begin_execution(self, abort_signal: threading.Event | None = None) -> bool:
        """
        Gate the tool body.

        Returns:
            True if the body may run, False if the invocation is cancelled

        Raises:
            PolicyDeniedError: If the policy denied the call
            ConfirmationRequiredError: If confirmation was skipped or is
                still unresolved and the policy does not allow the call
        """
        with self._lock:
            if self._state == InvocationState.DENIED and self._decision is not None:
                raise self._deny(self._decision)

            if self._state == InvocationState.CANCELLED:
                return False

            if is_aborted(abort_signal):
                logger.info("Aborted %s before execution", self.tool_name)
                self._state = InvocationState.CANCELLED
                return False

            if self._state == InvocationState.INIT:
                decision = self._evaluate()
                if decision.decision == Decision.DENY:
                    raise self._deny(decision)
                if decision.decision != Decision.ALLOW:
                    raise ConfirmationRequiredError(tool=self.tool_name, state=self._state.value)
                self._state = InvocationState.EXECUTABLE

            if self._state == InvocationState.PENDING:
                raise ConfirmationRequiredError(tool=self.tool_name, state=self._state.value)

            if self._state == InvocationState.CONFIRMED:
                if self._outcome == ConfirmationOutcome.PROCEED_ALWAYS:
                    self._remember_approval()
                self._state = InvocationState.EXECUTABLE

            return True

    def _remember_approval(self) -> None:
        mode = self._mode_provider()
        rule = PolicyRule(
            tool_name=self.tool_name,
            args_pattern=call_scope_pattern(self.args),
            decision=Decision.ALLOW,
            priority=ALWAYS_ALLOW_PRIORITY,
            modes=frozenset({mode}),
            source="ProceedAlways",
        )
        self.policy_store.add_rule(rule)
        logger.info("Always allowing %s in %s mode", self.tool_name, mode.value)

    def __repr__(self) -> str:
        return f"<ConfirmationMediator: {self.tool_name} state={self._state.value}>"
