"""
Pure domain layer.

This module contains value objects and pure functions with NO dependencies
on:
- Value transport
- Time/clock (other than the injectable Clock interface)
- I/O

All domain records are immutable and deterministic.
"""

from construction_kernel.domain.access import (
    OPERATION_ACCESS,
    AccessRule,
    Identity,
    Roster,
    is_authorized,
    rule_for,
)
from construction_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from construction_kernel.domain.lifecycle import (
    DISPUTE_TRANSITIONS,
    PHASE_ORDER,
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
from construction_kernel.domain.transition_audit import (
    InvariantViolation,
    audit_transition,
)

__all__ = [
    # Access control
    "AccessRule",
    "Identity",
    "OPERATION_ACCESS",
    "Roster",
    "is_authorized",
    "rule_for",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Lifecycle
    "DISPUTE_TRANSITIONS",
    "DisputeStatus",
    "Milestone",
    "PHASE_ORDER",
    "Phase",
    # Records
    "Dispute",
    "EventType",
    "ProjectEvent",
    "ProjectSnapshot",
    # Audit
    "InvariantViolation",
    "audit_transition",
]
