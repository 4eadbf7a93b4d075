"""
construction_config -- scenario configuration for the construction kernel.

Responsibility:
    Loads YAML scenario files (deployment + ordered operation steps) into
    frozen schema objects and builds wired state machines from them.

Architecture position:
    Configuration layer above ``construction_kernel``.  The kernel MUST
    NEVER import from ``construction_config``.

Failure modes:
    - ``FileNotFoundError`` -- scenario file does not exist.
    - ``KeyError`` / ``ValueError`` -- structural problems in the document.
"""

from __future__ import annotations

from pathlib import Path

from construction_config.bridges import build_project
from construction_config.loader import (
    SUPPORTED_OPERATIONS,
    compute_checksum,
    load_scenario,
    parse_scenario,
)
from construction_config.schema import ProjectDeployment, Scenario, ScenarioStep

# Scenarios shipped with the package
BUILTIN_SCENARIO_DIR = Path(__file__).parent / "scenarios"


def builtin_scenario(name: str) -> Scenario:
    """Load ``scenarios/<name>.yaml`` from the package."""
    path = BUILTIN_SCENARIO_DIR / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No built-in scenario named {name!r} ({path})")
    return load_scenario(path)


__all__ = [
    "BUILTIN_SCENARIO_DIR",
    "ProjectDeployment",
    "SUPPORTED_OPERATIONS",
    "Scenario",
    "ScenarioStep",
    "build_project",
    "builtin_scenario",
    "compute_checksum",
    "load_scenario",
    "parse_scenario",
]
