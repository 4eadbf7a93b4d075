"""
Transition audit (``construction_kernel.domain.transition_audit``).

Responsibility
--------------
Compares two consecutive ``ProjectSnapshot`` values and reports every
``ProjectInvariant`` the step between them broke.  Used by the scenario
runner after each replayed step and by the property-based tests.

Architecture position
---------------------
**Kernel domain layer** -- pure function, ZERO I/O.  Detection only; the
state machine is what prevents violations in the first place.
"""

from __future__ import annotations

from dataclasses import dataclass

from construction_kernel.domain.lifecycle import DisputeStatus, Phase
from construction_kernel.domain.records import ProjectSnapshot
from construction_kernel.invariants import ProjectInvariant


@dataclass(frozen=True)
class InvariantViolation:
    """One broken invariant and a human-readable description."""

    invariant: ProjectInvariant
    detail: str


def audit_transition(
    before: ProjectSnapshot,
    after: ProjectSnapshot,
) -> tuple[InvariantViolation, ...]:
    """Return the invariants violated by the step ``before`` -> ``after``.

    An empty tuple means the step was legal.
    """
    violations: list[InvariantViolation] = []

    def flag(invariant: ProjectInvariant, detail: str) -> None:
        violations.append(InvariantViolation(invariant, detail))

    # Initialization
    if before.initialized:
        if not after.initialized:
            flag(ProjectInvariant.ONE_SHOT_INITIALIZATION, "project became uninitialized")
        if (before.contractor, before.regulator) != (after.contractor, after.regulator):
            flag(ProjectInvariant.ONE_SHOT_INITIALIZATION, "contractor or regulator changed")
    if before.administrator != after.administrator:
        flag(ProjectInvariant.ONE_SHOT_INITIALIZATION, "administrator changed")

    # Phase
    if after.phase.ordinal < before.phase.ordinal:
        flag(
            ProjectInvariant.PHASE_MONOTONICITY,
            f"phase moved back from {before.phase.value} to {after.phase.value}",
        )

    # Budget approval
    if before.budget_approved and not after.budget_approved:
        flag(ProjectInvariant.ONE_SHOT_BUDGET_APPROVAL, "budget approval was revoked")
    approved_now = not before.budget_approved and after.budget_approved
    if approved_now and before.phase is not Phase.PRE_CONSTRUCTION:
        flag(
            ProjectInvariant.ONE_SHOT_BUDGET_APPROVAL,
            f"budget approved during {before.phase.value}",
        )

    # Budget custody
    if after.budget < 0:
        flag(ProjectInvariant.BUDGET_CUSTODY, f"budget is negative ({after.budget})")
    paid = after.total_paid - before.total_paid
    if paid < 0:
        flag(ProjectInvariant.BUDGET_CUSTODY, "total_paid decreased")
    initialized_now = not before.initialized and after.initialized
    if not approved_now and not initialized_now and before.budget - after.budget != paid:
        flag(
            ProjectInvariant.BUDGET_CUSTODY,
            f"budget moved by {after.budget - before.budget} while {paid} was paid",
        )

    # Milestones
    after_milestones = dict(after.milestones)
    for milestone, done in before.milestones:
        if done and not after_milestones.get(milestone, False):
            flag(
                ProjectInvariant.MILESTONE_MONOTONICITY,
                f"milestone {milestone.value} was reset",
            )
        if not done and after_milestones.get(milestone, False) and before.phase is not Phase.CONSTRUCTION:
            flag(
                ProjectInvariant.MILESTONE_MONOTONICITY,
                f"milestone {milestone.value} completed during {before.phase.value}",
            )

    # Subcontractors
    if not after.approved_subcontractors <= after.pending_subcontractors:
        flag(ProjectInvariant.SUBCONTRACTOR_VETTING, "approved identity was never pending")
    if not before.pending_subcontractors <= after.pending_subcontractors:
        flag(ProjectInvariant.SUBCONTRACTOR_VETTING, "pending identity removed")
    if not before.approved_subcontractors <= after.approved_subcontractors:
        flag(ProjectInvariant.SUBCONTRACTOR_VETTING, "approved identity removed")

    # Dispute ledger
    if len(after.disputes) < len(before.disputes):
        flag(ProjectInvariant.DISPUTE_LEDGER_APPEND_ONLY, "disputes were removed")
    for index, dispute in enumerate(after.disputes):
        if dispute.dispute_id != index:
            flag(
                ProjectInvariant.DISPUTE_LEDGER_APPEND_ONLY,
                f"dispute at position {index} carries id {dispute.dispute_id}",
            )
    for old, new in zip(before.disputes, after.disputes):
        if old.reason != new.reason or old.opened_by != new.opened_by:
            flag(
                ProjectInvariant.DISPUTE_LEDGER_APPEND_ONLY,
                f"dispute {old.dispute_id} was rewritten",
            )
        if old.status is DisputeStatus.RESOLVED and new.status is DisputeStatus.OPEN:
            flag(
                ProjectInvariant.DISPUTE_LEDGER_APPEND_ONLY,
                f"dispute {old.dispute_id} was reopened",
            )

    return tuple(violations)
