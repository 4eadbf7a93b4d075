"""
Kernel services.

- ProjectStateMachine: owns project state and its guarded operations.
- InMemoryTreasury: in-process value transport behind the ValueTransport port.
"""

from construction_kernel.services.project_state_machine import (
    EventSink,
    ProjectStateMachine,
)
from construction_kernel.services.treasury import (
    InMemoryTreasury,
    ReceiveHook,
    ValueTransport,
)

__all__ = [
    "EventSink",
    "InMemoryTreasury",
    "ProjectStateMachine",
    "ReceiveHook",
    "ValueTransport",
]
