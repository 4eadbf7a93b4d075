"""
construction_kernel.services.project_state_machine -- Project governance.

Responsibility:
    Owns all mutable state of one construction project and exposes the
    guarded operations that change it: initialization, budget approval,
    phase changes, milestone completion, safety compliance, subcontractor
    vetting, the dispute ledger, and payments out of budget custody.

Architecture position:
    Kernel > Services.  May import from domain/, utils/ and the treasury
    port.  The host supplies the calling identity (``actor``) on every
    operation and serializes top-level calls.

Invariants enforced:
    - Every operation is all-or-nothing: state is snapshotted on entry and
      restored on any exception, so a failure leaves no partial change and
      no event.
    - Guard order: initialized -> re-entrancy (make_payment only) ->
      access rule -> argument validation -> phase -> preconditions.
    - make_payment decrements the budget BEFORE transferring value, so a
      callback running during the transfer can only observe the reduced
      budget.
    - make_payment is not re-entrant; the in-flight flag is cleared on
      every exit path.
    - Events reach subscribers only after the outermost operation commits.

Failure modes:
    See ``construction_kernel.exceptions``.  Typed failures are logged as
    ``operation_rejected`` (WARNING); anything else as ``operation_failed``
    (ERROR with traceback).  All are re-raised to the caller.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TypeVar

from construction_kernel.domain.access import Roster, is_authorized, rule_for
from construction_kernel.domain.clock import Clock, SystemClock
from construction_kernel.domain.lifecycle import (
    DISPUTE_TRANSITIONS,
    DisputeStatus,
    Milestone,
    Phase,
)
from construction_kernel.domain.records import (
    Dispute,
    EventType,
    ProjectEvent,
    ProjectSnapshot,
)
from construction_kernel.exceptions import (
    AlreadyApprovedError,
    AlreadyCompletedError,
    AlreadyInitializedError,
    AlreadyResolvedError,
    ConstructionKernelError,
    DirectPaymentRejectedError,
    InsufficientBudgetError,
    InvalidAmountError,
    InvalidArgumentError,
    InvalidDisputeIdError,
    InvalidIdentityError,
    InvalidTransitionError,
    NotInitializedError,
    NotPendingError,
    ReentrantCallError,
    UnauthorizedError,
    WrongPhaseError,
)
from construction_kernel.logging_config import LogContext, get_logger
from construction_kernel.services.treasury import InMemoryTreasury, ValueTransport

logger = get_logger("services.project_state_machine")

EventSink = Callable[[ProjectEvent], None]


def _validate_amount(field_name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidAmountError(field_name, value)
    return value


def _label(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _validate_identity(field_name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentityError(field_name, value)
    return value


E = TypeVar("E", bound=Enum)


def _coerce_choice(enum_cls: type[E], field_name: str, value: Any) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgumentError(
            field_name, value, tuple(member.value for member in enum_cls),
        ) from None


@dataclass
class _ProjectState:
    """Everything an operation may roll back."""
    contractor: str | None = None
    regulator: str | None = None
    budget: int = 0
    total_paid: int = 0
    budget_approved: bool = False
    safety_compliant: bool = True
    phase: Phase = Phase.PRE_CONSTRUCTION
    initialized: bool = False
    milestones: dict[Milestone, bool] = field(
        default_factory=lambda: {m: False for m in Milestone}
    )
    pending: set[str] = field(default_factory=set)
    approved: set[str] = field(default_factory=set)
    disputes: list[Dispute] = field(default_factory=list)
    events: list[ProjectEvent] = field(default_factory=list)

    def copy(self) -> _ProjectState:
        return replace(
            self,
            milestones=dict(self.milestones),
            pending=set(self.pending),
            approved=set(self.approved),
            disputes=list(self.disputes),
            events=list(self.events),
        )


class ProjectStateMachine:
    """
    Authorization-gated state machine for a single construction project.

    Contract
    --------
    * Mutating operations take the calling identity as keyword ``actor``.
    * Queries take no actor and never mutate.
    * ``receive`` rejects any unsolicited value sent to the project.

    Guarantees
    ----------
    * A raised exception means nothing changed.
    * ``budget`` is never negative and only decreases through payments.
    * Dispute ids are ledger positions, assigned from 0, never reused.

    Non-goals
    ---------
    * Does NOT persist anything or verify identities.
    * Does NOT gate phase changes on milestones or budget approval.
    * Does NOT block any operation while the project is non-compliant.
    """

    def __init__(
        self,
        administrator: str,
        *,
        project_id: str = "project",
        treasury: ValueTransport | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._administrator = _validate_identity("administrator", administrator)
        self._project_id = _validate_identity("project_id", project_id)
        self._treasury = treasury if treasury is not None else InMemoryTreasury()
        self._clock = clock or SystemClock()
        self._state = _ProjectState()
        self._payment_in_progress = False
        self._depth = 0
        self._delivered = 0
        self._sinks: list[EventSink] = []
        self._treasury.register_receiver(self._project_id, self.receive)

    # =========================================================================
    # Operation scaffolding
    # =========================================================================

    @contextmanager
    def _operation(self, operation: str, actor: Any, **details: Any) -> Iterator[None]:
        """Run one operation atomically with operation-scoped log context."""
        saved = self._state.copy()
        self._depth += 1
        try:
            with LogContext.bind(
                project_id=self._project_id,
                actor_id=str(actor),
                operation=operation,
            ):
                try:
                    yield
                except ConstructionKernelError as exc:
                    self._state = saved
                    logger.warning(
                        "operation_rejected",
                        extra={"exc_code": exc.code, "reason": str(exc), **details},
                    )
                    raise
                except Exception:
                    self._state = saved
                    logger.error("operation_failed", exc_info=True, extra=details)
                    raise
        finally:
            self._depth -= 1
        if self._depth == 0:
            self._deliver_events()

    def _deliver_events(self) -> None:
        committed = self._state.events[self._delivered:]
        self._delivered = len(self._state.events)
        failure: Exception | None = None
        for event in committed:
            for sink in list(self._sinks):
                try:
                    sink(event)
                except Exception as exc:
                    logger.error(
                        "event_sink_failed",
                        exc_info=True,
                        extra={"project_id": self._project_id, "sequence": event.sequence},
                    )
                    if failure is None:
                        failure = exc
        if failure is not None:
            raise failure

    def _emit(self, event_type: EventType, actor: str, **payload: Any) -> ProjectEvent:
        event = ProjectEvent(
            sequence=len(self._state.events),
            event_type=event_type,
            actor=actor,
            payload=tuple(payload.items()),
            recorded_at=self._clock.now(),
        )
        self._state.events.append(event)
        logger.info("project_event", extra={"event": event})
        return event

    def _roster(self) -> Roster:
        return Roster(
            administrator=self._administrator,
            contractor=self._state.contractor,
            regulator=self._state.regulator,
            approved_subcontractors=frozenset(self._state.approved),
        )

    def _require_initialized(self, operation: str) -> None:
        if not self._state.initialized:
            raise NotInitializedError(operation)

    def _require_access(self, operation: str, actor: Any) -> None:
        rule = rule_for(operation)
        if not is_authorized(rule, actor, self._roster()):
            raise UnauthorizedError(operation, str(actor), rule.value)

    def _require_phase(self, operation: str, required: Phase) -> None:
        if self._state.phase is not required:
            raise WrongPhaseError(operation, required.value, self._state.phase.value)

    def subscribe(self, sink: EventSink) -> None:
        """Register ``sink`` to receive every committed event, in order.

        Sinks run after the operation has committed. A failing sink does not
        stop delivery: every sink still sees every committed event, then the
        first sink exception propagates to the caller. The operation itself
        is not undone.
        """
        self._sinks.append(sink)

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(
        self,
        contractor: str,
        regulator: str,
        budget: int,
        *,
        actor: str,
    ) -> None:
        """Set the contractor, regulator and opening budget. Once only."""
        with self._operation("initialize", actor):
            self._require_access("initialize", actor)
            if self._state.initialized:
                raise AlreadyInitializedError(self._project_id)
            contractor = _validate_identity("contractor", contractor)
            regulator = _validate_identity("regulator", regulator)
            budget = _validate_amount("budget", budget)

            self._state.contractor = contractor
            self._state.regulator = regulator
            self._state.budget = budget
            self._state.initialized = True
            logger.info(
                "project_initialized",
                extra={"contractor": contractor, "regulator": regulator, "budget": budget},
            )

    # =========================================================================
    # Budget and phases
    # =========================================================================

    def approve_budget(self, amount: int, *, actor: str) -> None:
        """Fix the budget at ``amount``. Once, during pre-construction."""
        with self._operation("approve_budget", actor, amount=amount):
            self._require_initialized("approve_budget")
            self._require_access("approve_budget", actor)
            amount = _validate_amount("amount", amount)
            self._require_phase("approve_budget", Phase.PRE_CONSTRUCTION)
            if self._state.budget_approved:
                raise AlreadyApprovedError(self._state.budget)

            self._state.budget = amount
            self._state.budget_approved = True
            self._emit(EventType.BUDGET_APPROVED, actor, amount=amount)

    def change_phase(self, new_phase: Phase | str, *, actor: str) -> None:
        """Advance to ``new_phase``; any strictly later phase is allowed."""
        with self._operation("change_phase", actor, new_phase=_label(new_phase)):
            self._require_initialized("change_phase")
            self._require_access("change_phase", actor)
            new_phase = _coerce_choice(Phase, "new_phase", new_phase)
            current = self._state.phase
            if not new_phase.is_after(current):
                raise InvalidTransitionError(current.value, new_phase.value)

            self._state.phase = new_phase
            self._emit(EventType.PHASE_CHANGED, actor, phase=new_phase)

    def complete_milestone(self, milestone: Milestone | str, *, actor: str) -> None:
        """Mark ``milestone`` done. Construction phase only, once per milestone."""
        with self._operation("complete_milestone", actor, milestone=_label(milestone)):
            self._require_initialized("complete_milestone")
            self._require_access("complete_milestone", actor)
            milestone = _coerce_choice(Milestone, "milestone", milestone)
            self._require_phase("complete_milestone", Phase.CONSTRUCTION)
            if self._state.milestones[milestone]:
                raise AlreadyCompletedError(milestone.value)

            self._state.milestones[milestone] = True
            self._emit(EventType.MILESTONE_COMPLETED, actor, milestone=milestone)

    # =========================================================================
    # Safety compliance
    # =========================================================================

    def record_safety_violation(self, reason: str, *, actor: str) -> None:
        with self._operation("record_safety_violation", actor):
            self._require_initialized("record_safety_violation")
            self._require_access("record_safety_violation", actor)
            self._state.safety_compliant = False
            self._emit(EventType.SAFETY_VIOLATION, actor, reason=str(reason))

    def regain_safety_compliance(self, *, actor: str) -> None:
        with self._operation("regain_safety_compliance", actor):
            self._require_initialized("regain_safety_compliance")
            self._require_access("regain_safety_compliance", actor)
            self._state.safety_compliant = True
            self._emit(EventType.SAFETY_COMPLIANCE_REGAINED, actor)

    # =========================================================================
    # Subcontractor registry
    # =========================================================================

    def add_pending_subcontractor(self, identity: str, *, actor: str) -> None:
        """Propose ``identity`` for vetting. Re-proposing re-emits."""
        with self._operation("add_pending_subcontractor", actor, identity=identity):
            self._require_initialized("add_pending_subcontractor")
            self._require_access("add_pending_subcontractor", actor)
            identity = _validate_identity("identity", identity)

            self._state.pending.add(identity)
            self._emit(EventType.SUBCONTRACTOR_PENDING, actor, identity=identity)

    def approve_subcontractor(self, identity: str, *, actor: str) -> None:
        """Approve a pending ``identity``. It stays in the pending set."""
        with self._operation("approve_subcontractor", actor, identity=identity):
            self._require_initialized("approve_subcontractor")
            self._require_access("approve_subcontractor", actor)
            if identity not in self._state.pending:
                raise NotPendingError(str(identity))

            self._state.approved.add(identity)
            self._emit(EventType.SUBCONTRACTOR_APPROVED, actor, identity=identity)

    # =========================================================================
    # Dispute ledger
    # =========================================================================

    def open_dispute(self, reason: str, *, actor: str) -> int:
        """Append an open dispute and return its id."""
        with self._operation("open_dispute", actor):
            self._require_initialized("open_dispute")
            self._require_access("open_dispute", actor)

            dispute = Dispute(
                dispute_id=len(self._state.disputes),
                reason=str(reason),
                opened_by=actor,
            )
            self._state.disputes.append(dispute)
            self._emit(
                EventType.DISPUTE_OPENED, actor,
                dispute_id=dispute.dispute_id, reason=dispute.reason,
            )
        return dispute.dispute_id

    def resolve_dispute(self, dispute_id: int, *, actor: str) -> None:
        with self._operation("resolve_dispute", actor, dispute_id=dispute_id):
            self._require_initialized("resolve_dispute")
            self._require_access("resolve_dispute", actor)
            dispute = self._lookup_dispute(dispute_id)
            if DisputeStatus.RESOLVED not in DISPUTE_TRANSITIONS[dispute.status]:
                raise AlreadyResolvedError(dispute.dispute_id)

            self._state.disputes[dispute.dispute_id] = replace(
                dispute, status=DisputeStatus.RESOLVED,
            )
            self._emit(EventType.DISPUTE_RESOLVED, actor, dispute_id=dispute.dispute_id)

    def _lookup_dispute(self, dispute_id: Any) -> Dispute:
        count = len(self._state.disputes)
        valid = isinstance(dispute_id, int) and not isinstance(dispute_id, bool)
        if not valid or not 0 <= dispute_id < count:
            raise InvalidDisputeIdError(dispute_id, count)
        return self._state.disputes[dispute_id]

    # =========================================================================
    # Budget custody
    # =========================================================================

    def make_payment(self, destination: str, amount: int, *, actor: str) -> None:
        """Pay ``amount`` out of the budget to ``destination``.

        The budget is reduced before the value transfer runs; the transfer
        is the last mutating step and the event follows it.
        """
        with self._operation("make_payment", actor, destination=destination, amount=amount):
            self._require_initialized("make_payment")
            if self._payment_in_progress:
                raise ReentrantCallError("make_payment", str(actor))
            self._payment_in_progress = True
            try:
                self._require_access("make_payment", actor)
                destination = _validate_identity("destination", destination)
                amount = _validate_amount("amount", amount)
                if amount > self._state.budget:
                    raise InsufficientBudgetError(amount, self._state.budget)

                self._state.budget -= amount
                self._state.total_paid += amount
                self._treasury.transfer(self._project_id, destination, amount)
                self._emit(
                    EventType.PAYMENT_MADE, actor,
                    destination=destination, amount=amount,
                )
            finally:
                self._payment_in_progress = False

    def receive(self, sender: str, amount: int) -> None:
        """Reject unsolicited value sent to the project."""
        logger.warning(
            "direct_payment_rejected",
            extra={"project_id": self._project_id, "sender": sender, "amount": amount},
        )
        raise DirectPaymentRejectedError(str(sender), amount)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def custody_account(self) -> str:
        """Treasury identity holding the project's funds."""
        return self._project_id

    @property
    def administrator(self) -> str:
        return self._administrator

    @property
    def contractor(self) -> str | None:
        return self._state.contractor

    @property
    def regulator(self) -> str | None:
        return self._state.regulator

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def budget(self) -> int:
        return self._state.budget

    @property
    def total_paid(self) -> int:
        return self._state.total_paid

    @property
    def budget_approved(self) -> bool:
        return self._state.budget_approved

    @property
    def safety_compliant(self) -> bool:
        return self._state.safety_compliant

    @property
    def payment_in_progress(self) -> bool:
        return self._payment_in_progress

    def is_milestone_completed(self, milestone: Milestone | str) -> bool:
        return self._state.milestones[_coerce_choice(Milestone, "milestone", milestone)]

    def milestones(self) -> dict[Milestone, bool]:
        return dict(self._state.milestones)

    def is_pending(self, identity: str) -> bool:
        return identity in self._state.pending

    def is_approved(self, identity: str) -> bool:
        return identity in self._state.approved

    @property
    def pending_subcontractors(self) -> frozenset[str]:
        return frozenset(self._state.pending)

    @property
    def approved_subcontractors(self) -> frozenset[str]:
        return frozenset(self._state.approved)

    def dispute(self, dispute_id: int) -> Dispute:
        return self._lookup_dispute(dispute_id)

    def disputes(self) -> tuple[Dispute, ...]:
        return tuple(self._state.disputes)

    @property
    def dispute_count(self) -> int:
        return len(self._state.disputes)

    @property
    def events(self) -> tuple[ProjectEvent, ...]:
        return tuple(self._state.events)

    def snapshot(self) -> ProjectSnapshot:
        state = self._state
        return ProjectSnapshot(
            project_id=self._project_id,
            administrator=self._administrator,
            contractor=state.contractor,
            regulator=state.regulator,
            initialized=state.initialized,
            phase=state.phase,
            budget=state.budget,
            total_paid=state.total_paid,
            budget_approved=state.budget_approved,
            safety_compliant=state.safety_compliant,
            milestones=tuple(state.milestones.items()),
            pending_subcontractors=frozenset(state.pending),
            approved_subcontractors=frozenset(state.approved),
            disputes=tuple(state.disputes),
            event_count=len(state.events),
        )
