"""
Pytest fixtures for the construction kernel test suite.

Provides:
- Well-known identities for every role
- Deterministic clock and seeded treasury
- State machines at the common lifecycle starting points
- Structured log capture

DESIGN RULE: Every project fixture is opt-in.  Each test declares the
lifecycle point it starts from in its function signature.
"""

import json
import logging
from io import StringIO

import pytest

from construction_kernel.domain.clock import DeterministicClock
from construction_kernel.domain.lifecycle import Phase
from construction_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from construction_kernel.services.project_state_machine import ProjectStateMachine
from construction_kernel.services.treasury import InMemoryTreasury

# ---------------------------------------------------------------------------
# Well-known identities
# ---------------------------------------------------------------------------

PROJECT_ID = "riverside-clinic"
ADMIN = "city-works"
CONTRACTOR = "northbuild"
REGULATOR = "state-inspector"
SUBCONTRACTOR = "roofing-ltd"
OUTSIDER = "stranger"

OPENING_BUDGET = 1000
CUSTODY_FUNDS = 10_000


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """Capture structured JSON log records emitted under construction_kernel.

    Usage::

        def test_something(captured_logs, project):
            project.approve_budget(1000, actor=ADMIN)
            records = captured_logs()
            assert any(r["message"] == "project_event" for r in records)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("construction_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Project fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def treasury():
    """Treasury holding the project's custody funds."""
    return InMemoryTreasury({PROJECT_ID: CUSTODY_FUNDS})


@pytest.fixture
def machine(treasury, deterministic_clock):
    """A freshly constructed, uninitialized project."""
    return ProjectStateMachine(
        ADMIN,
        project_id=PROJECT_ID,
        treasury=treasury,
        clock=deterministic_clock,
    )


@pytest.fixture
def project(machine):
    """Initialized project: contractor, regulator, budget 1000, pre-construction."""
    machine.initialize(CONTRACTOR, REGULATOR, OPENING_BUDGET, actor=ADMIN)
    return machine


@pytest.fixture
def construction_project(project):
    """Budget approved at 1000 and moved into construction."""
    project.approve_budget(OPENING_BUDGET, actor=ADMIN)
    project.change_phase(Phase.CONSTRUCTION, actor=ADMIN)
    return project


@pytest.fixture
def vetted_project(project):
    """Initialized project with SUBCONTRACTOR proposed and approved."""
    project.add_pending_subcontractor(SUBCONTRACTOR, actor=CONTRACTOR)
    project.approve_subcontractor(SUBCONTRACTOR, actor=ADMIN)
    return project
