#!/usr/bin/env python3
"""
Replay a construction project scenario and report the outcome.

Usage:
    python scripts/run_scenario.py [scenario.yaml] [--log-level LEVEL] [--quiet]

If no file is given, runs the built-in baseline scenario
(construction_config/scenarios/baseline.yaml).

The script:
  1. Loads the scenario and builds the project and its treasury
  2. Replays every step, recording the error code it failed with (if any)
  3. Audits project invariants between consecutive snapshots
  4. Prints a JSON report (per-step outcomes plus the final snapshot)

Exit status is 1 when any step's outcome differs from its expect_error, or
any invariant was violated; 0 otherwise.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from construction_config import BUILTIN_SCENARIO_DIR, build_project, load_scenario
from construction_config.schema import Scenario, ScenarioStep
from construction_kernel.domain.clock import Clock
from construction_kernel.domain.records import ProjectSnapshot
from construction_kernel.domain.transition_audit import audit_transition
from construction_kernel.exceptions import ConstructionKernelError
from construction_kernel.logging_config import LogContext, configure_logging, get_logger
from construction_kernel.services.project_state_machine import ProjectStateMachine

logger = get_logger("scripts.run_scenario")


@dataclass(frozen=True)
class StepOutcome:
    """What one replayed step did, against what it was expected to do."""

    index: int
    operation: str
    actor: str
    expected_error: str | None
    actual_error: str | None
    result: Any = None
    violations: tuple[str, ...] = ()

    @property
    def matched(self) -> bool:
        return self.expected_error == self.actual_error and not self.violations

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "operation": self.operation,
            "actor": self.actor,
            "expected_error": self.expected_error,
            "actual_error": self.actual_error,
            "result": self.result,
            "violations": list(self.violations),
            "matched": self.matched,
        }


@dataclass(frozen=True)
class ScenarioReport:
    scenario: str
    checksum: str
    outcomes: tuple[StepOutcome, ...]
    final_snapshot: ProjectSnapshot
    balances: dict[str, int]

    @property
    def ok(self) -> bool:
        return all(o.matched for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "checksum": self.checksum,
            "ok": self.ok,
            "steps": [o.to_dict() for o in self.outcomes],
            "final_state": self.final_snapshot.to_dict(),
            "fingerprint": self.final_snapshot.fingerprint,
            "balances": self.balances,
        }


def _invoke(machine: ProjectStateMachine, step: ScenarioStep) -> Any:
    kwargs = step.kwargs
    if step.operation == "receive":
        return machine.receive(step.actor, **kwargs)
    return getattr(machine, step.operation)(**kwargs, actor=step.actor)


def run_scenario(scenario: Scenario, clock: Clock | None = None) -> ScenarioReport:
    """Replay ``scenario`` on a freshly built project."""
    machine, treasury = build_project(scenario.deployment, clock=clock)
    outcomes: list[StepOutcome] = []

    with LogContext.bind(correlation_id=scenario.checksum[:16]):
        for step in scenario.steps:
            before = machine.snapshot()
            result = None
            actual_error = None
            try:
                result = _invoke(machine, step)
            except ConstructionKernelError as exc:
                actual_error = exc.code
            violations = tuple(
                f"{v.invariant.value}: {v.detail}"
                for v in audit_transition(before, machine.snapshot())
            )
            outcome = StepOutcome(
                index=step.index,
                operation=step.operation,
                actor=step.actor,
                expected_error=step.expect_error,
                actual_error=actual_error,
                result=result,
                violations=violations,
            )
            if not outcome.matched:
                logger.warning("scenario_step_diverged", extra=outcome.to_dict())
            outcomes.append(outcome)

    return ScenarioReport(
        scenario=scenario.name,
        checksum=scenario.checksum,
        outcomes=tuple(outcomes),
        final_snapshot=machine.snapshot(),
        balances=treasury.balances(),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a construction project scenario")
    parser.add_argument(
        "scenario",
        nargs="?",
        type=Path,
        default=BUILTIN_SCENARIO_DIR / "baseline.yaml",
        help="Scenario YAML file (default: built-in baseline)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level written to stderr",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print the JSON report")
    args = parser.parse_args(argv)

    if not args.scenario.is_file():
        print(f"Error: scenario not found: {args.scenario}", file=sys.stderr)
        return 1

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)
    report = run_scenario(load_scenario(args.scenario))

    if not args.quiet:
        print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
