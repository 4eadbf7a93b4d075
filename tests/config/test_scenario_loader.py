"""
Tests for scenario configuration (construction_config).

Covers parsing of deployments and steps, load-time validation, checksums,
the built-in scenario lookup, and building a wired project from a
deployment.
"""

from pathlib import Path

import pytest
import yaml

from construction_config import (
    BUILTIN_SCENARIO_DIR,
    SUPPORTED_OPERATIONS,
    build_project,
    builtin_scenario,
    compute_checksum,
    load_scenario,
    parse_scenario,
)
from construction_config.loader import load_yaml_file, parse_deployment, parse_step
from construction_config.schema import ProjectDeployment
from construction_kernel.exceptions import DirectPaymentRejectedError


def _document(**overrides) -> dict:
    doc = {
        "scenario": "tiny",
        "description": "two steps",
        "deployment": {
            "project_id": "shed",
            "administrator": "owner",
            "balances": {"shed": 100, "outsider": 5},
        },
        "steps": [
            {
                "operation": "initialize",
                "actor": "owner",
                "args": {"contractor": "builder", "regulator": "inspector", "budget": 50},
            },
            {
                "operation": "approve_budget",
                "actor": "builder",
                "args": {"amount": 50},
                "expect_error": "UNAUTHORIZED",
            },
        ],
    }
    doc.update(overrides)
    return doc


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "scenario.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestParseDeployment:

    def test_balances_sorted_into_tuples(self):
        d = parse_deployment({"project_id": "p", "administrator": "a", "balances": {"z": 1, "b": 2}})
        assert d == ProjectDeployment(project_id="p", administrator="a", balances=(("b", 2), ("z", 1)))

    def test_balances_optional(self):
        d = parse_deployment({"project_id": "p", "administrator": "a"})
        assert d.balances == ()

    def test_missing_administrator(self):
        with pytest.raises(KeyError):
            parse_deployment({"project_id": "p"})

    @pytest.mark.parametrize("balances", [[1, 2], {"p": -1}, {"p": 1.5}, {"p": True}])
    def test_bad_balances(self, balances):
        with pytest.raises(ValueError):
            parse_deployment({"project_id": "p", "administrator": "a", "balances": balances})


class TestParseStep:

    def test_parse(self):
        step = parse_step(
            {"operation": "make_payment", "actor": "a", "args": {"destination": "d", "amount": 3}},
            index=4,
        )
        assert step.index == 4
        assert step.kwargs == {"destination": "d", "amount": 3}
        assert step.expect_error is None

    def test_no_args(self):
        step = parse_step({"operation": "regain_safety_compliance", "actor": "r"}, index=0)
        assert step.kwargs == {}

    def test_unknown_operation(self):
        with pytest.raises(ValueError, match="unknown operation"):
            parse_step({"operation": "demolish", "actor": "a"}, index=0)

    def test_args_must_be_mapping(self):
        with pytest.raises(ValueError):
            parse_step({"operation": "open_dispute", "actor": "a", "args": ["x"]}, index=0)

    def test_missing_actor(self):
        with pytest.raises(KeyError):
            parse_step({"operation": "open_dispute"}, index=0)

    def test_receive_is_supported(self):
        assert "receive" in SUPPORTED_OPERATIONS
        assert "initialize" in SUPPORTED_OPERATIONS


class TestParseScenario:

    def test_full_document(self):
        scenario = parse_scenario(_document())
        assert scenario.name == "tiny"
        assert scenario.description == "two steps"
        assert scenario.deployment.project_id == "shed"
        assert [s.operation for s in scenario.steps] == ["initialize", "approve_budget"]
        assert scenario.steps[1].expect_error == "UNAUTHORIZED"
        assert scenario.checksum == compute_checksum(_document())

    def test_checksum_changes_with_content(self):
        changed = _document(description="different")
        assert parse_scenario(changed).checksum != parse_scenario(_document()).checksum

    def test_steps_must_be_list(self):
        with pytest.raises(ValueError):
            parse_scenario(_document(steps={"operation": "initialize"}))

    def test_empty_steps(self):
        assert parse_scenario(_document(steps=None)).steps == ()


class TestLoadFromDisk:

    def test_load_scenario(self, tmp_path):
        scenario = load_scenario(_write(tmp_path, _document()))
        assert scenario.name == "tiny"

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError):
            load_yaml_file(_write(tmp_path, ["not", "a", "mapping"]))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_scenario(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("steps: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_scenario(path)


class TestBuiltinScenarios:

    def test_baseline_ships(self):
        assert (BUILTIN_SCENARIO_DIR / "baseline.yaml").is_file()
        scenario = builtin_scenario("baseline")
        assert scenario.name == "baseline"
        assert scenario.deployment.project_id == "riverside-clinic"
        assert scenario.steps[0].operation == "initialize"

    def test_unknown_builtin(self):
        with pytest.raises(FileNotFoundError):
            builtin_scenario("no-such-scenario")


class TestBuildProject:

    def test_wires_machine_and_treasury(self):
        scenario = parse_scenario(_document())
        machine, treasury = build_project(scenario.deployment)

        assert machine.project_id == "shed"
        assert machine.administrator == "owner"
        assert treasury.balances() == {"outsider": 5, "shed": 100}

    def test_project_rejects_incoming_transfers(self):
        machine, treasury = build_project(parse_scenario(_document()).deployment)
        with pytest.raises(DirectPaymentRejectedError):
            treasury.transfer("outsider", machine.custody_account, 5)
        assert treasury.balance_of("outsider") == 5

    def test_payments_draw_on_seeded_custody(self, deterministic_clock):
        machine, treasury = build_project(
            parse_scenario(_document()).deployment, clock=deterministic_clock,
        )
        machine.initialize("builder", "inspector", 50, actor="owner")
        machine.make_payment("builder", 20, actor="owner")
        assert treasury.balance_of("shed") == 80
        assert machine.events[-1].recorded_at == deterministic_clock.now()
