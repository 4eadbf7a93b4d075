"""
Bridges from scenario configuration to kernel objects.

Translates a ``ProjectDeployment`` into a wired ``ProjectStateMachine``
backed by an ``InMemoryTreasury`` seeded with the opening balances.
"""

from __future__ import annotations

from construction_config.schema import ProjectDeployment
from construction_kernel.domain.clock import Clock
from construction_kernel.services.project_state_machine import ProjectStateMachine
from construction_kernel.services.treasury import InMemoryTreasury


def build_project(
    deployment: ProjectDeployment,
    clock: Clock | None = None,
) -> tuple[ProjectStateMachine, InMemoryTreasury]:
    """Create the treasury and the state machine for ``deployment``."""
    treasury = InMemoryTreasury(dict(deployment.balances))
    machine = ProjectStateMachine(
        deployment.administrator,
        project_id=deployment.project_id,
        treasury=treasury,
        clock=clock,
    )
    return machine, treasury
