"""
Project records (``construction_kernel.domain.records``).

Responsibility
--------------
Frozen dataclass records produced by the project state machine: dispute
ledger entries, emitted events, and point-in-time snapshots of all
queryable state.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Returned
to callers by ``ProjectStateMachine`` queries; never mutated in place
(the ledger replaces a ``Dispute`` with an updated copy on resolution).

Invariants enforced
-------------------
* All records are ``frozen=True``.
* ``ProjectSnapshot.fingerprint`` is deterministic: equal state always
  yields the same SHA-256 fingerprint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from construction_kernel.domain.lifecycle import DisputeStatus, Milestone, Phase
from construction_kernel.utils.hashing import hash_payload


@dataclass(frozen=True)
class Dispute:
    """An entry in the append-only dispute ledger. ``dispute_id`` is its index."""
    dispute_id: int
    reason: str
    opened_by: str
    status: DisputeStatus = DisputeStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.status is DisputeStatus.OPEN


class EventType(str, Enum):
    """Notifications emitted by successful operations."""

    BUDGET_APPROVED = "budget_approved"
    MILESTONE_COMPLETED = "milestone_completed"
    SAFETY_VIOLATION = "safety_violation"
    SAFETY_COMPLIANCE_REGAINED = "safety_compliance_regained"
    PAYMENT_MADE = "payment_made"
    PHASE_CHANGED = "phase_changed"
    SUBCONTRACTOR_PENDING = "subcontractor_pending"
    SUBCONTRACTOR_APPROVED = "subcontractor_approved"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESOLVED = "dispute_resolved"


@dataclass(frozen=True)
class ProjectEvent:
    """One emitted notification. ``sequence`` is 0-based and contiguous."""
    sequence: int
    event_type: EventType
    actor: str
    payload: tuple[tuple[str, Any], ...] = ()
    recorded_at: datetime | None = None

    @property
    def data(self) -> dict[str, Any]:
        return dict(self.payload)


@dataclass(frozen=True)
class ProjectSnapshot:
    """Point-in-time copy of every queryable field of a project."""
    project_id: str
    administrator: str
    contractor: str | None
    regulator: str | None
    initialized: bool
    phase: Phase
    budget: int
    total_paid: int
    budget_approved: bool
    safety_compliant: bool
    milestones: tuple[tuple[Milestone, bool], ...]
    pending_subcontractors: frozenset[str] = field(default_factory=frozenset)
    approved_subcontractors: frozenset[str] = field(default_factory=frozenset)
    disputes: tuple[Dispute, ...] = ()
    event_count: int = 0

    def milestone_completed(self, milestone: Milestone | str) -> bool:
        return dict(self.milestones)[Milestone(milestone)]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (enums as values, sets sorted)."""
        return {
            "project_id": self.project_id,
            "administrator": self.administrator,
            "contractor": self.contractor,
            "regulator": self.regulator,
            "initialized": self.initialized,
            "phase": self.phase.value,
            "budget": self.budget,
            "total_paid": self.total_paid,
            "budget_approved": self.budget_approved,
            "safety_compliant": self.safety_compliant,
            "milestones": {m.value: done for m, done in self.milestones},
            "pending_subcontractors": sorted(self.pending_subcontractors),
            "approved_subcontractors": sorted(self.approved_subcontractors),
            "disputes": [
                {
                    "dispute_id": d.dispute_id,
                    "reason": d.reason,
                    "opened_by": d.opened_by,
                    "status": d.status.value,
                }
                for d in self.disputes
            ],
            "event_count": self.event_count,
        }

    @property
    def fingerprint(self) -> str:
        return hash_payload(self.to_dict())
