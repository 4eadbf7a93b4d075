"""
Scenario Loader (``construction_config.loader``).

Responsibility
--------------
Loads YAML scenario files and parses them into the frozen dataclasses of
``construction_config.schema``.

Architecture position
---------------------
**Config layer**.  May import from ``construction_kernel`` (to know which
operations exist); the kernel never imports from here.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown operations are rejected at load time, not at replay time.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrongly typed values or unknown operations  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from construction_config.schema import ProjectDeployment, Scenario, ScenarioStep
from construction_kernel.domain.access import OPERATION_ACCESS
from construction_kernel.utils.hashing import hash_payload

SUPPORTED_OPERATIONS: tuple[str, ...] = tuple(OPERATION_ACCESS) + ("receive",)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the canonical JSON form of ``data``."""
    return hash_payload(data)


def _parse_amount(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{where}: expected a non-negative integer, got {value!r}")
    return value


def parse_deployment(data: dict[str, Any]) -> ProjectDeployment:
    """Parse a ``ProjectDeployment`` from a dict."""
    balances = data.get("balances") or {}
    if not isinstance(balances, dict):
        raise ValueError("deployment.balances must be a mapping of identity -> amount")
    parsed = tuple(
        sorted(
            (str(identity), _parse_amount(amount, f"deployment.balances.{identity}"))
            for identity, amount in balances.items()
        )
    )
    return ProjectDeployment(
        project_id=str(data["project_id"]),
        administrator=str(data["administrator"]),
        balances=parsed,
    )


def parse_step(data: dict[str, Any], index: int) -> ScenarioStep:
    """
    Parse a ``ScenarioStep`` from a dict.

    Raises:
        KeyError: if ``operation`` or ``actor`` is missing.
        ValueError: if the operation is unknown or ``args`` is not a mapping.
    """
    operation = data["operation"]
    if operation not in SUPPORTED_OPERATIONS:
        raise ValueError(
            f"steps[{index}]: unknown operation {operation!r}; "
            f"expected one of {', '.join(SUPPORTED_OPERATIONS)}"
        )
    arguments = data.get("args") or {}
    if not isinstance(arguments, dict):
        raise ValueError(f"steps[{index}].args must be a mapping")
    expect_error = data.get("expect_error")
    return ScenarioStep(
        index=index,
        operation=operation,
        actor=str(data["actor"]),
        arguments=tuple(arguments.items()),
        expect_error=str(expect_error) if expect_error is not None else None,
    )


def parse_scenario(data: dict[str, Any]) -> Scenario:
    """Parse a full ``Scenario`` document."""
    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise ValueError("steps must be a list")
    return Scenario(
        name=str(data["scenario"]),
        description=str(data.get("description", "")),
        deployment=parse_deployment(data["deployment"]),
        steps=tuple(parse_step(step, i) for i, step in enumerate(steps)),
        checksum=compute_checksum(data),
    )


def load_scenario(path: Path) -> Scenario:
    """Load and parse a scenario YAML file."""
    return parse_scenario(load_yaml_file(Path(path)))
