"""
Access control rules (``construction_kernel.domain.access``).

Responsibility
--------------
Declares which caller predicate guards each state-machine operation and
evaluates that predicate against the current project roster.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over value objects.  The state
machine builds a ``Roster`` from its state and asks ``is_authorized``;
this module never resolves identities itself (the host supplies the actor).

Invariants enforced
-------------------
* Every mutating operation except ``receive`` appears in
  ``OPERATION_ACCESS``; an operation missing from the table is a
  programming error (``KeyError``), never an implicit allow.
* Approved subcontractors gain exactly the contractor's operational rights
  (milestones, proposing subcontractors, disputes) and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

Identity = str


class AccessRule(str, Enum):
    """Caller predicates an operation can require."""

    ADMINISTRATOR_ONLY = "administrator_only"
    REGULATOR_ONLY = "regulator_only"
    CONTRACTOR_OR_APPROVED_SUBCONTRACTOR = "contractor_or_approved_subcontractor"


@dataclass(frozen=True)
class Roster:
    """The identities an access rule is evaluated against."""

    administrator: Identity
    contractor: Identity | None = None
    regulator: Identity | None = None
    approved_subcontractors: frozenset[Identity] = field(default_factory=frozenset)


# operation name -> access rule
OPERATION_ACCESS: dict[str, AccessRule] = {
    "initialize": AccessRule.ADMINISTRATOR_ONLY,
    "approve_budget": AccessRule.ADMINISTRATOR_ONLY,
    "complete_milestone": AccessRule.CONTRACTOR_OR_APPROVED_SUBCONTRACTOR,
    "record_safety_violation": AccessRule.REGULATOR_ONLY,
    "regain_safety_compliance": AccessRule.REGULATOR_ONLY,
    "make_payment": AccessRule.ADMINISTRATOR_ONLY,
    "change_phase": AccessRule.ADMINISTRATOR_ONLY,
    "add_pending_subcontractor": AccessRule.CONTRACTOR_OR_APPROVED_SUBCONTRACTOR,
    "approve_subcontractor": AccessRule.ADMINISTRATOR_ONLY,
    "open_dispute": AccessRule.CONTRACTOR_OR_APPROVED_SUBCONTRACTOR,
    "resolve_dispute": AccessRule.ADMINISTRATOR_ONLY,
}


def rule_for(operation: str) -> AccessRule:
    """Return the access rule guarding ``operation``."""
    return OPERATION_ACCESS[operation]


def is_authorized(rule: AccessRule, actor: Identity, roster: Roster) -> bool:
    """Evaluate ``rule`` for ``actor``.

    Unset roster identities (``None``) never match, so an uninitialized
    contractor or regulator slot cannot be claimed by any actor.
    """
    if rule is AccessRule.ADMINISTRATOR_ONLY:
        return actor == roster.administrator
    if rule is AccessRule.REGULATOR_ONLY:
        return roster.regulator is not None and actor == roster.regulator
    if rule is AccessRule.CONTRACTOR_OR_APPROVED_SUBCONTRACTOR:
        if roster.contractor is not None and actor == roster.contractor:
            return True
        return actor in roster.approved_subcontractors
    raise ValueError(f"Unknown access rule: {rule!r}")
