"""
Construction Kernel - Project Governance State Machine

An authorization-gated state machine for a construction project with:
- Ordered lifecycle phases
- Milestone tracking
- Budget custody with re-entrancy guarded payments
- Safety-compliance flag
- Subcontractor vetting
- Append-only dispute ledger
"""

__version__ = "0.1.0"
