"""
Tests for the canonical booking tables and FinancialDiagram.

Each event type is checked for its signed positions, its arrows and
per-agent balance.
"""

from datetime import date
from decimal import Decimal

import pytest

from moma_kernel.domain.objects import AccountKind
from moma_kernel.exceptions import UnbalancedEntryError, UnknownEventTypeError
from moma_engines.diagrams import (
    ACCOUNT_KINDS,
    BookingLine,
    EventType,
    Side,
    boe_creation_diagram,
    boe_maturity_diagram,
    boe_transfer_diagram,
    booking_pair,
    booking_table,
    build_diagram,
    diagram_from_lines,
    full_event_sequence,
    loans_diagram,
    money_creation_diagram,
    purchase_diagram,
    settlement_diagram,
)
from moma_engines.invariance import verify_macro_invariance, verify_micro_invariance

DAY = date(2025, 1, 15)


class TestMoneyCreation:

    def test_positions(self):
        diagram = money_creation_diagram(1000, DAY)
        assert diagram.position("CB", "PaperMoney") == Decimal("1000")
        assert diagram.position("CB", "PaperMoneyCirculation") == Decimal("-1000")

    def test_micro_invariance(self):
        diagram = money_creation_diagram(1000, DAY)
        assert diagram.debits("CB") == diagram.credits("CB") == Decimal("1000")
        assert verify_micro_invariance(diagram)

    def test_single_dated_arrow(self):
        diagram = money_creation_diagram(1000, DAY)
        (arrow,) = diagram.morphisms
        assert arrow.label == "money_creation:CB:1"
        assert arrow.source.id == "CB.PaperMoney"
        assert arrow.target.id == "CB.PaperMoneyCirculation"
        assert arrow.amount == Decimal("1000")
        assert arrow.date == DAY
        assert diagram.diagram_id == "money_creation@2025-01-15"


class TestLoans:

    def test_claim_and_liability(self):
        diagram = loans_diagram(200, DAY)
        assert diagram.position("CB", "LoansToBanks") == Decimal("200")
        assert diagram.position("Banks", "LoansFromCB") == Decimal("-200")
        assert diagram.position("Bankb", "CBReserve") == Decimal("200")

    def test_macro_invariance(self):
        diagram = loans_diagram(200, DAY)
        assert verify_macro_invariance(diagram)
        assert diagram.agents == ("Bankb", "Banks", "CB")

    def test_four_arrows(self):
        assert len(loans_diagram(200, DAY).morphisms) == 4


class TestBillOfExchangeEvents:

    def test_purchase(self):
        diagram = purchase_diagram(100, DAY)
        assert diagram.position("B", "Bicycle") == Decimal("100")
        assert diagram.position("S", "Bicycle") == Decimal("-100")
        assert diagram.position("S", "ReceivableGeneral") == Decimal("100")
        assert diagram.position("B", "LiabilityGeneral") == Decimal("-100")

    def test_creation_replaces_trade_credit(self):
        diagram = boe_creation_diagram(100, DAY)
        assert diagram.position("S", "ReceivableFromBOE") == Decimal("100")
        assert diagram.position("B", "LiabilityFromBOE") == Decimal("-100")
        assert verify_macro_invariance(diagram)

    def test_seller_bank_transfer_books_discount(self):
        diagram = boe_transfer_diagram(
            EventType.BOE_TRANSFER_SELLER_BANK, DAY, price="4878.05", face_value=5000
        )
        assert diagram.position("Banks", "ReceivableFromBOE") == Decimal("5000.00")
        assert diagram.position("Banks", "RetainedEarnings") == Decimal("-121.95")
        assert diagram.position("S", "DepositsAtBanks") == Decimal("4878.05")
        assert verify_micro_invariance(diagram)
        assert verify_macro_invariance(diagram)

    def test_buyer_bank_transfer(self):
        diagram = boe_transfer_diagram("boe_transfer_buyer_bank", DAY, price=4900, face_value=5000)
        assert diagram.position("Bankb", "ReceivableFromBOE") == Decimal("5000")
        assert diagram.position("Banks", "DepositsAtBankb") == Decimal("4900")
        assert verify_macro_invariance(diagram)

    def test_transfer_rejects_other_events(self):
        with pytest.raises(UnknownEventTypeError):
            boe_transfer_diagram(EventType.LOANS, DAY, price=1, face_value=1)

    def test_maturity_and_settlement(self):
        maturity = boe_maturity_diagram(5000, DAY)
        settlement = settlement_diagram(4900, DAY)
        assert maturity.position("B", "LoansFromBankb") == Decimal("-5000")
        assert settlement.position("Banks", "CBReserve") == Decimal("4900")
        assert settlement.position("CB", "DepositsFromBanks") == Decimal("-4900")
        assert verify_macro_invariance(maturity)
        assert verify_macro_invariance(settlement)


class TestTablesAndValidation:

    def test_every_event_has_a_table(self):
        for event in EventType:
            assert callable(booking_table(event))

    def test_unknown_event(self):
        with pytest.raises(UnknownEventTypeError) as exc_info:
            build_diagram("barter", DAY, amount=1)
        assert exc_info.value.event_type == "barter"

    def test_every_booked_account_has_a_kind(self):
        for event in EventType:
            amounts = {"amount": Decimal("10")}
            if "transfer" in event.value:
                amounts["discount"] = Decimal("1")
            for line in booking_table(event)(**amounts):
                assert line.account in ACCOUNT_KINDS

    def test_mismatched_amounts_rejected(self):
        debit, _ = booking_pair("CB", "PaperMoney", "PaperMoneyCirculation", 100)
        credit = BookingLine("CB", "PaperMoneyCirculation", AccountKind.LIABILITY, 90, Side.CREDIT)
        with pytest.raises(UnbalancedEntryError) as exc_info:
            diagram_from_lines(EventType.MONEY_CREATION, DAY, [debit, credit])
        assert exc_info.value.row_index == 0

    def test_cross_agent_pair_rejected(self):
        debit, _ = booking_pair("CB", "PaperMoney", "PaperMoneyCirculation", 100)
        credit = BookingLine("Banks", "LoansFromCB", AccountKind.LIABILITY, 100, Side.CREDIT)
        with pytest.raises(UnbalancedEntryError):
            diagram_from_lines(EventType.LOANS, DAY, [debit, credit])

    def test_odd_row_count_rejected(self):
        debit, _ = booking_pair("CB", "PaperMoney", "PaperMoneyCirculation", 100)
        with pytest.raises(UnbalancedEntryError):
            diagram_from_lines(EventType.MONEY_CREATION, DAY, [debit])

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            BookingLine("CB", "PaperMoney", AccountKind.ASSET, -1, Side.DEBIT)

    def test_diagrams_are_values(self):
        assert money_creation_diagram(1000, DAY) == money_creation_diagram("1000", DAY)


class TestFullEventSequence:

    def test_six_events_on_consecutive_days(self, reference_sequence):
        assert [d.event_type for d in reference_sequence] == [
            EventType.MONEY_CREATION,
            EventType.LOANS,
            EventType.PURCHASE,
            EventType.BOE_CREATION,
            EventType.BOE_TRANSFER_SELLER_BANK,
            EventType.SETTLEMENT,
        ]
        assert [d.event_date.day for d in reference_sequence] == [15, 16, 17, 18, 19, 20]

    def test_every_event_conserves(self, reference_sequence):
        for diagram in reference_sequence:
            assert verify_micro_invariance(diagram), diagram.diagram_id
            assert verify_macro_invariance(diagram), diagram.diagram_id

    def test_matches_explicit_builders(self):
        sequence = full_event_sequence(1000, 200, 100, DAY)
        assert sequence[0] == money_creation_diagram(1000, DAY)
