"""
Project Invariants Contract.

These invariants are structural law for every project state machine. No
configuration or scenario may relax them.

Enforcement lives in ProjectStateMachine (guards at each operation).
Detection lives in domain.transition_audit, which compares two consecutive
snapshots and reports which of these were broken.
"""

from enum import Enum, unique


@unique
class ProjectInvariant(str, Enum):
    """Non-configurable invariants enforced by the construction kernel."""

    ONE_SHOT_INITIALIZATION = "one_shot_initialization"
    """initialized goes False -> True once and never back. Identities set by
    initialize() never change afterwards."""

    PHASE_MONOTONICITY = "phase_monotonicity"
    """phase never moves to an earlier ordinal."""

    ONE_SHOT_BUDGET_APPROVAL = "one_shot_budget_approval"
    """budget_approved goes False -> True once, and only while the project is
    in PRE_CONSTRUCTION."""

    BUDGET_CUSTODY = "budget_custody"
    """budget is never negative. Outside approval and initialization it only
    decreases, and only by the amount added to total_paid."""

    MILESTONE_MONOTONICITY = "milestone_monotonicity"
    """A completed milestone is never reset, and completion only happens in
    CONSTRUCTION."""

    SUBCONTRACTOR_VETTING = "subcontractor_vetting"
    """approved is a subset of pending. Neither set ever shrinks."""

    DISPUTE_LEDGER_APPEND_ONLY = "dispute_ledger_append_only"
    """Disputes are never removed or reordered, ids equal positions, and a
    resolved dispute never reopens."""


# All invariants as a frozenset for programmatic checks.
ALL_PROJECT_INVARIANTS: frozenset[ProjectInvariant] = frozenset(ProjectInvariant)
