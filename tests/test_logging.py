"""
Structured logging: JSON rendering, scenario context and setup.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from moma_kernel.domain.objects import AccountKind, Morphism, account_object
from moma_kernel.exceptions import CompositionMismatchError, UnknownEventTypeError
from moma_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def json_stream():
    """A configured moma logger writing JSON lines into a StringIO."""
    stream = StringIO()
    configure_logging(handler=logging.StreamHandler(stream), level=logging.DEBUG)
    return stream


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestJsonRendering:

    def test_envelope(self, json_stream):
        get_logger("engines.boe").info("boe_transition")
        (record,) = _records(json_stream)
        assert record["message"] == "boe_transition"
        assert record["level"] == "INFO"
        assert record["logger"] == "moma.engines.boe"
        assert record["ts"].endswith("+00:00")

    def test_extra_and_value_types(self, json_stream):
        get_logger("engines.boe").info(
            "boe_priced",
            extra={
                "price": Decimal("4878.05"),
                "maturity": date(2024, 5, 1),
                "kind": AccountKind.ASSET,
                "holders": {"Banks", "Bankb"},
                "steps": 6,
            },
        )
        (record,) = _records(json_stream)
        assert record["price"] == "4878.05"
        assert record["maturity"] == "2024-05-01"
        assert record["kind"] == "asset"
        assert record["holders"] == ["Bankb", "Banks"]
        assert record["steps"] == 6

    def test_category_values_log_by_identity(self, json_stream):
        source = account_object("CB", "PaperMoney", AccountKind.ASSET)
        target = account_object("CB", "PaperMoneyCirculation", AccountKind.LIABILITY)
        arrow = Morphism(source, target, "issue", Decimal("1000"))
        get_logger("domain").debug("arrow_added", extra={"arrow": arrow, "source": source})
        (record,) = _records(json_stream)
        assert record["arrow"] == "issue"
        assert record["source"] == "CB.PaperMoney"

    def test_kernel_error_details(self, json_stream):
        try:
            raise UnknownEventTypeError("barter")
        except UnknownEventTypeError:
            get_logger("engines.diagrams").exception("diagram_rejected")
        (record,) = _records(json_stream)
        assert record["exc_code"] == "UNKNOWN_EVENT_TYPE"
        assert record["exc_type"] == "UnknownEventTypeError"
        assert record["exc_event_type"] == "barter"
        assert "Traceback" in record["traceback"]

    def test_plain_exception_has_no_code(self, json_stream):
        try:
            raise ValueError("bad rate")
        except ValueError:
            get_logger("config").exception("config_rejected")
        (record,) = _records(json_stream)
        assert record["exc_message"] == "bad rate"
        assert "exc_code" not in record

    def test_error_code_is_class_level(self):
        assert CompositionMismatchError.code == "COMPOSITION_MISMATCH"


class TestScenarioContext:

    def test_bound_fields_reach_records(self, json_stream):
        with LogContext.bind(scenario="bill_of_exchange", event_type="settlement"):
            get_logger("engines").info("inside")
        get_logger("engines").info("outside")
        inside, outside = _records(json_stream)
        assert inside["scenario"] == "bill_of_exchange"
        assert inside["event_type"] == "settlement"
        assert "scenario" not in outside

    def test_extra_does_not_override_context(self, json_stream):
        LogContext.set(diagram_id="loans@2025-01-16")
        get_logger("engines").info("x", extra={"diagram_id": "other"})
        (record,) = _records(json_stream)
        assert record["diagram_id"] == "loans@2025-01-16"

    def test_nested_bind_restores_outer(self):
        LogContext.set(event_type="loans")
        with LogContext.bind(event_type="purchase", diagram_id="p"):
            assert LogContext.get_all() == {"event_type": "purchase", "diagram_id": "p"}
        assert LogContext.get_all() == {"event_type": "loans"}

    def test_none_values_are_ignored(self):
        LogContext.set(scenario="s", correlation_id=None)
        assert LogContext.get_all() == {"scenario": "s"}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="agent"):
            LogContext.set(agent="CB")
        with pytest.raises(ValueError):
            with LogContext.bind(agent="CB"):
                pass

    def test_field_order_is_stable(self):
        LogContext.set(diagram_id="d", correlation_id="c", event_type="e", scenario="s")
        assert tuple(LogContext.get_all()) == CONTEXT_FIELDS


class TestSetup:

    def test_second_configure_is_ignored(self):
        first = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert logging.getLogger("moma").handlers == [first]
        assert isinstance(first.formatter, StructuredFormatter)

    def test_level_filters(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream), level=logging.INFO)
        log = get_logger("engines.ledger")
        log.debug("hidden")
        log.info("shown")
        assert [r["message"] for r in _records(stream)] == ["shown"]

    def test_reset_detaches(self, json_stream):
        reset_logging()
        root = logging.getLogger("moma")
        assert root.handlers == []
        assert root.propagate is True
