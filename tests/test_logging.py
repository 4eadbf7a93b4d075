"""Tests for the structured logging system (construction_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, datetime
from io import StringIO

import pytest

from construction_kernel.domain.lifecycle import Phase
from construction_kernel.domain.records import EventType, ProjectEvent
from construction_kernel.exceptions import InsufficientBudgetError, WrongPhaseError
from construction_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _configured_stream(level: int = logging.INFO) -> StringIO:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler, level=level)
    return stream


def _records(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_one_json_object_per_line(self):
        stream = _configured_stream()
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"amount": 3})

        records = _records(stream)
        assert [r["message"] for r in records] == ["first", "second"]
        assert records[0]["level"] == "INFO"
        assert records[0]["logger"] == "construction_kernel.test"
        assert "ts" in records[0]
        assert records[1]["amount"] == 3

    def test_below_level_suppressed(self):
        stream = _configured_stream(level=logging.INFO)
        get_logger("test").debug("hidden")
        assert _records(stream) == []

    def test_context_fields_merged(self):
        stream = _configured_stream()
        with LogContext.bind(project_id="p-1", actor_id="city-works", operation="approve_budget"):
            get_logger("test").info("inside")

        [record] = _records(stream)
        assert record["project_id"] == "p-1"
        assert record["actor_id"] == "city-works"
        assert record["operation"] == "approve_budget"

    def test_no_context_fields_when_empty(self):
        stream = _configured_stream()
        get_logger("test").info("bare")

        [record] = _records(stream)
        assert "project_id" not in record
        assert "correlation_id" not in record

    def test_enums_sets_and_datetimes_serialized(self):
        stream = _configured_stream()
        when = datetime(2024, 1, 1, tzinfo=UTC)
        get_logger("test").info(
            "typed",
            extra={"phase": Phase.CONSTRUCTION, "who": {"b", "a"}, "at": when},
        )

        [record] = _records(stream)
        assert record["phase"] == "construction"
        assert record["who"] == ["a", "b"]
        assert record["at"] == when.isoformat()

    def test_project_event_flattened(self):
        stream = _configured_stream()
        when = datetime(2024, 3, 1, tzinfo=UTC)
        event = ProjectEvent(
            sequence=4,
            event_type=EventType.PAYMENT_MADE,
            actor="city-works",
            payload=(("destination", "northbuild"), ("amount", 250)),
            recorded_at=when,
        )
        get_logger("test").info("project_event", extra={"event": event})

        [record] = _records(stream)
        assert record["event_type"] == "payment_made"
        assert record["sequence"] == 4
        assert record["event_actor"] == "city-works"
        assert record["recorded_at"] == when.isoformat()
        assert record["destination"] == "northbuild"
        assert record["amount"] == 250
        assert "event" not in record

    def test_event_payload_cannot_shadow_context(self):
        stream = _configured_stream()
        event = ProjectEvent(
            sequence=0,
            event_type=EventType.DISPUTE_OPENED,
            actor="northbuild",
            payload=(("operation", "forged"), ("reason", "late")),
        )
        with LogContext.bind(operation="open_dispute"):
            get_logger("test").info("project_event", extra={"event": event})

        [record] = _records(stream)
        assert record["operation"] == "open_dispute"
        assert record["reason"] == "late"

    def test_plain_exception_fields(self):
        stream = _configured_stream()
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        [record] = _records(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record
        assert "exc_code" not in record

    def test_kernel_exception_fields_extracted(self):
        stream = _configured_stream()
        try:
            raise WrongPhaseError("complete_milestone", "construction", "pre_construction")
        except WrongPhaseError:
            get_logger("test").error("phase_error", exc_info=True)

        [record] = _records(stream)
        assert record["exc_code"] == "WRONG_PHASE"
        assert record["exc_operation"] == "complete_milestone"
        assert record["exc_required_phase"] == "construction"
        assert record["exc_current_phase"] == "pre_construction"

    def test_numeric_exception_fields_keep_type(self):
        stream = _configured_stream()
        try:
            raise InsufficientBudgetError(1200, 1000)
        except InsufficientBudgetError:
            get_logger("test").error("budget_error", exc_info=True)

        [record] = _records(stream)
        assert record["exc_requested"] == 1200
        assert record["exc_available"] == 1000


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_bind_and_get(self):
        with LogContext.bind(correlation_id="x", project_id="p"):
            assert LogContext.get_all() == {"correlation_id": "x", "project_id": "p"}
        assert LogContext.get_all() == {}

    def test_bind_skips_none(self):
        with LogContext.bind(correlation_id="x"):
            with LogContext.bind(correlation_id=None, actor_id="a"):
                assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "a"}

    def test_clear(self):
        with LogContext.bind(operation="make_payment"):
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        with LogContext.bind(operation="outer", project_id="p"):
            with LogContext.bind(operation="inner"):
                assert LogContext.get_all() == {"operation": "inner", "project_id": "p"}
            assert LogContext.get_all() == {"operation": "outer", "project_id": "p"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(actor_id="a"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_bind_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="not_a_field"):
            with LogContext.bind(not_a_field="x", project_id="p"):
                pass
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        _configured_stream()
        _configured_stream()
        assert len(logging.getLogger("construction_kernel").handlers) == 1

    def test_does_not_propagate(self):
        _configured_stream()
        assert logging.getLogger("construction_kernel").propagate is False

    def test_get_logger_namespace(self):
        assert get_logger("services.treasury").name == "construction_kernel.services.treasury"

    def test_child_loggers_use_root_handler(self):
        stream = _configured_stream(level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        [record] = _records(stream)
        assert record["logger"] == "construction_kernel.deep.nested.module"

    def test_reset_allows_reconfiguration(self):
        _configured_stream()
        reset_logging()
        stream = _configured_stream()
        get_logger("test").info("again")
        assert _records(stream)[0]["message"] == "again"
