"""
Lifecycle enums (``construction_kernel.domain.lifecycle``).

Responsibility
--------------
Pure value types for the project lifecycle: the ordered construction
phases, the tracked milestones, and the dispute status state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``services/`` or outer layers.

Invariants enforced
-------------------
* Phases are totally ordered by declaration order; ``Phase.ordinal`` is the
  only comparison key.  The ``str`` mixin would otherwise compare phases
  alphabetically, so never use ``<`` on phases directly.
* ``DISPUTE_TRANSITIONS`` defines the only valid dispute status changes.
  RESOLVED is terminal.
"""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """Ordered lifecycle stage of the project."""

    PRE_CONSTRUCTION = "pre_construction"
    CONSTRUCTION = "construction"
    POST_CONSTRUCTION = "post_construction"
    MAINTENANCE = "maintenance"

    @property
    def ordinal(self) -> int:
        return PHASE_ORDER.index(self)

    def is_after(self, other: Phase) -> bool:
        """True when this phase comes strictly later than ``other``."""
        return self.ordinal > other.ordinal


PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)


class Milestone(str, Enum):
    """Discrete construction deliverables tracked as completion flags."""

    FOUNDATION = "foundation"
    FRAMING = "framing"
    ROOFING = "roofing"
    INTERIOR = "interior"
    HANDOVER = "handover"


class DisputeStatus(str, Enum):
    """Dispute ledger entry status."""

    OPEN = "open"
    RESOLVED = "resolved"


DISPUTE_TRANSITIONS: dict[DisputeStatus, frozenset[DisputeStatus]] = {
    DisputeStatus.OPEN: frozenset({DisputeStatus.RESOLVED}),
    DisputeStatus.RESOLVED: frozenset(),
}
