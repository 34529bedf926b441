"""Tests for the diagram law checks and InvarianceVerifier."""

from datetime import date
from decimal import Decimal

import pytest

from moma_kernel.domain.category import create_category
from moma_kernel.domain.objects import Morphism
from moma_kernel.domain.pattern import complexify
from moma_kernel.invariants import DIAGRAM_LAWS, CategoricalLaw
from moma_engines.diagrams import (
    EventType,
    booking_pair,
    diagram_from_lines,
    loans_diagram,
    money_creation_diagram,
)
from moma_engines.invariance import (
    CANONICAL_CLAIM_PAIRS,
    ClaimPair,
    InvarianceVerifier,
    check_commutativity,
    check_macro_invariance,
    check_universal_property,
    emergent_money_patterns,
    is_commutative,
    verify_universal_property,
)

DAY = date(2025, 1, 16)


@pytest.fixture
def half_loan():
    """Only the central bank side of a loan to the seller bank."""
    lines = booking_pair("CB", "LoansToBanks", "DepositsFromBanks", 200)
    return diagram_from_lines(EventType.LOANS, DAY, lines)


class TestCommutativity:

    def test_square_with_equal_first_legs(self):
        cat = create_category(
            ["A", "B", "C", "D"],
            [
                Morphism("A", "B", "f", 10),
                Morphism("B", "D", "g", 10),
                Morphism("A", "C", "h", 10),
                Morphism("C", "D", "k", 3),
            ],
        )
        assert is_commutative(cat)

    def test_parallel_arrows_with_different_amounts(self):
        cat = create_category(["A", "B"], [Morphism("A", "B", "f", 10), Morphism("A", "B", "f2", 12)])
        result = check_commutativity(cat)
        assert not result.passed
        (diag,) = result.diagnostics
        assert diag.subject == "A -> B"
        assert diag.imbalance == Decimal("2")

    def test_difference_below_tolerance(self):
        cat = create_category(
            ["A", "B"], [Morphism("A", "B", "f", "10"), Morphism("A", "B", "f2", "10.00000000001")]
        )
        assert check_commutativity(cat, tolerance=Decimal("1e-10")).passed

    def test_cycle_terminates(self):
        cat = create_category(["A", "B"], [Morphism("A", "B", "f", 1), Morphism("B", "A", "g", 1)])
        assert check_commutativity(cat, max_path_length=3).passed

    def test_canonical_diagram_commutes(self):
        assert is_commutative(loans_diagram(200, DAY))


class TestMacroInvariance:

    def test_fracture_reported_per_pair(self, half_loan):
        result = check_macro_invariance(half_loan.entries)
        assert not result.passed
        assert {d.subject for d in result.diagnostics} == {"cb_loans_seller_bank", "reserves_seller_bank"}
        assert all(d.imbalance == Decimal("200") for d in result.diagnostics)
        assert result.checked == len(CANONICAL_CLAIM_PAIRS)

    def test_custom_claim_pair(self):
        pair = ClaimPair("paper", "PaperMoney", "PaperMoneyCirculation")
        diagram = money_creation_diagram(1000, DAY)
        assert check_macro_invariance(diagram.entries, [pair]).passed

    def test_claim_pair_needs_accounts(self):
        with pytest.raises(ValueError):
            ClaimPair("broken", "", "LoansFromCB")

    def test_agent_restriction(self):
        pair = CANONICAL_CLAIM_PAIRS[0]
        assert pair.is_claim("CB", "LoansToBanks")
        assert not pair.is_claim("Banks", "LoansToBanks")
        assert pair.is_liability("Banks", "LoansFromCB")
        assert not pair.is_liability("Bankb", "LoansFromCB")


class TestUniversalProperty:

    def test_whole_diagram_colimit(self):
        diagram = loans_diagram(200, DAY)
        assert verify_universal_property(diagram)
        assert check_universal_property(diagram.category).checked == len(diagram.objects)

    def test_empty_category_passes_vacuously(self):
        result = check_universal_property(create_category([]))
        assert result.passed
        assert result.checked == 0
        assert verify_universal_property(create_category([]))


class TestEmergentMoney:

    def test_patterns_for_loans(self):
        diagram = loans_diagram(200, DAY)
        names = {p.name for p in emergent_money_patterns(diagram)}
        assert names == {
            "money:cb_loans_seller_bank",
            "money:cb_loans_buyer_bank",
            "money:reserves_seller_bank",
            "money:reserves_buyer_bank",
        }

    def test_complexified_diagram_gains_binding_objects(self):
        diagram = loans_diagram(200, DAY)
        result = complexify(diagram.category, emergent_money_patterns(diagram))
        assert result.get_object("colimit_Banks.LoansFromCB_CB.LoansToBanks") is not None


class TestInvarianceVerifier:

    def test_canonical_diagram_valid(self):
        report = InvarianceVerifier().run_all_checks(money_creation_diagram(1000, DAY))
        assert report.is_valid
        assert bool(report)
        assert [r.law for r in report.results] == list(DIAGRAM_LAWS)
        assert report.subject == "money_creation@2025-01-16"

    def test_empty_diagram_reports_every_law(self):
        empty = diagram_from_lines(EventType.LOANS, DAY, [])
        report = InvarianceVerifier().run_all_checks(empty)
        assert report.is_valid
        assert tuple(r.law for r in report.results) == DIAGRAM_LAWS
        assert report.result(CategoricalLaw.UNIVERSAL_PROPERTY).checked == 0

    def test_report_names_failing_law(self, half_loan):
        report = InvarianceVerifier().run_all_checks(half_loan)
        assert report.failed_laws == (CategoricalLaw.MACRO_INVARIANCE,)
        assert report.result("micro_invariance").passed
        assert report.as_dict()["macro_invariance"] is False
        assert len(report.diagnostics) == 2

    def test_unknown_law_lookup(self):
        report = InvarianceVerifier().run_all_checks(money_creation_diagram(1, DAY))
        with pytest.raises(KeyError):
            report.result(CategoricalLaw.NATURALITY)

    def test_verify_many_keeps_order(self, reference_sequence, half_loan):
        batch = list(reference_sequence) + [half_loan]
        reports = InvarianceVerifier().verify_many(batch, max_workers=4)
        assert [r.subject for r in reports] == [d.diagram_id for d in batch]
        assert [r.is_valid for r in reports] == [True] * 6 + [False]

    def test_verify_many_empty(self):
        assert InvarianceVerifier().verify_many([]) == ()

    def test_tolerance_must_be_positive(self):
        with pytest.raises(ValueError):
            InvarianceVerifier(tolerance="0")

    def test_failure_logged(self, captured_logs, half_loan):
        InvarianceVerifier().run_all_checks(half_loan)
        records = [r for r in captured_logs() if r["message"] == "diagram_verification_failed"]
        assert records[0]["failed_laws"] == ["macro_invariance"]
        assert records[0]["diagram_id"] == half_loan.diagram_id
