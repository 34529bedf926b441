"""Tests for the engine tracer decorator and input fingerprints."""

from datetime import date
from decimal import Decimal

import pytest

from moma_engines.diagrams import EventType, money_creation_diagram
from moma_engines.tracer import canonical_form, compute_input_fingerprint, traced_engine
from moma_kernel.domain.objects import AccountKind, Morphism, account_object


class TestInputFingerprint:

    def test_deterministic(self):
        kwargs = {"amount": Decimal("10"), "on": date(2024, 1, 1)}
        assert compute_input_fingerprint(("amount", "on"), kwargs) == compute_input_fingerprint(
            ("amount", "on"), dict(kwargs)
        )

    def test_decimal_normalized(self):
        one = compute_input_fingerprint(("amount",), {"amount": Decimal("10")})
        two = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        assert one == two

    def test_dict_order_irrelevant(self):
        one = compute_input_fingerprint(("amounts",), {"amounts": {"a": 1, "b": 2}})
        two = compute_input_fingerprint(("amounts",), {"amounts": {"b": 2, "a": 1}})
        assert one == two

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})

    def test_enum_uses_value(self):
        one = compute_input_fingerprint(("e",), {"e": EventType.LOANS})
        two = compute_input_fingerprint(("e",), {"e": "loans"})
        assert one == two


class TestTracedEngine:

    def test_emits_trace(self, captured_logs):
        @traced_engine("demo_engine", "2.0", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=4) == 8
        (trace,) = [r for r in captured_logs() if r["message"] == "MOMA_ENGINE_TRACE"]
        assert trace["engine_name"] == "demo_engine"
        assert trace["engine_version"] == "2.0"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 4})
        assert trace["duration_ms"] >= 0
        assert trace["outcome"] == "ok"

    def test_preserves_name(self):
        @traced_engine("demo_engine", "1.0")
        def named():
            return None

        assert named.__name__ == "named"

    def test_diagram_builder_traced(self, captured_logs):
        money_creation_diagram(1000, date(2025, 1, 15))
        engines = {r.get("engine_name") for r in captured_logs() if r["message"] == "MOMA_ENGINE_TRACE"}
        assert "financial_diagram" in engines

    def test_positional_and_keyword_calls_match(self, captured_logs):
        @traced_engine("demo_engine", "1.0", fingerprint_fields=("face", "rate"))
        def price(face, rate):
            return face * rate

        price(Decimal("100"), rate=Decimal("0.1"))
        price(face=Decimal("100"), rate=Decimal("0.1"))
        first, second = [r for r in captured_logs() if r["message"] == "MOMA_ENGINE_TRACE"]
        assert first["input_fingerprint"] == second["input_fingerprint"] != ""

    def test_failure_traced_and_reraised(self, captured_logs):
        @traced_engine("demo_engine", "1.0")
        def broken():
            raise ZeroDivisionError

        with pytest.raises(ZeroDivisionError):
            broken()
        (trace,) = [r for r in captured_logs() if r["message"] == "MOMA_ENGINE_TRACE"]
        assert trace["outcome"] == "error"
        assert trace["error"] == "ZeroDivisionError"
        assert trace["level"] == "WARNING"


class TestCanonicalForm:

    def test_category_values(self):
        source = account_object("CB", "PaperMoney", AccountKind.ASSET)
        target = account_object("CB", "PaperMoneyCirculation", AccountKind.LIABILITY)
        arrow = Morphism(source, target, "issue", Decimal("1000.0"), date(2025, 1, 15))
        assert canonical_form(source) == "CB.PaperMoney"
        assert canonical_form(arrow) == "issue:CB.PaperMoney->CB.PaperMoneyCirculation:1E+3:2025-01-15"

    def test_bool_is_not_an_int(self):
        assert canonical_form(True) == "true"
        assert canonical_form(1) == "1"
