"""
Scenario configuration schema.

Defines the human-authored, reviewable artifacts that drive a project
replay.  YAML files are parsed into these types by the loader and turned
into a wired state machine by the bridges.

  ProjectDeployment = how the project is stood up (identities, funds)
  ScenarioStep      = one operation call and its expected outcome
  Scenario          = a deployment plus an ordered list of steps
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProjectDeployment:
    """Identities and opening treasury balances for one project."""

    project_id: str
    administrator: str
    balances: tuple[tuple[str, int], ...] = ()  # (identity, opening balance)


@dataclass(frozen=True)
class ScenarioStep:
    """One operation invocation.

    ``expect_error`` is the error code the step must fail with, or None when
    the step must succeed.
    """

    index: int
    operation: str
    actor: str
    arguments: tuple[tuple[str, Any], ...] = ()
    expect_error: str | None = None

    @property
    def kwargs(self) -> dict[str, Any]:
        return dict(self.arguments)


@dataclass(frozen=True)
class Scenario:
    """A named, checksummed replay script."""

    name: str
    deployment: ProjectDeployment
    steps: tuple[ScenarioStep, ...]
    checksum: str = ""
    description: str = ""
