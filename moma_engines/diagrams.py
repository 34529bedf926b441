"""
moma_engines.diagrams -- Canonical double-entry diagrams for monetary events.

Responsibility:
    Turns each canonical event (money creation, loans, purchase, bill of
    exchange creation, the two bank transfers, maturity, settlement) into a
    FinancialDiagram: a category whose objects are agent accounts and whose
    arrows are matched debit/credit bookings.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on moma_kernel.domain (category, objects).

Invariants enforced:
    - Every booking table is a sequence of (debit, credit) line pairs of one
      agent and one amount; each pair yields one arrow from the debited
      account to the credited account.
    - Positions follow the sign convention debit = +amount,
      credit = -amount (liabilities accumulate as negatives).
    - Dispatch is a closed EventType -> table registry resolved at build
      time; an unregistered event fails with UnknownEventTypeError.

Failure modes:
    - UnbalancedEntryError for tables whose rows do not pair up.
    - UnknownEventTypeError for event types without a table.
    - ValueError for negative booking amounts.

Audit relevance:
    FinancialDiagram.entries keeps the booking lines that produced the
    category so every arrow is traceable to its table row.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from moma_kernel.domain.category import Category, create_category
from moma_kernel.domain.objects import (
    ZERO,
    AccountKind,
    CategoryObject,
    Morphism,
    account_object,
    to_decimal,
)
from moma_kernel.exceptions import UnbalancedEntryError, UnknownEventTypeError
from moma_kernel.logging_config import LogContext, get_logger
from moma_engines.tracer import traced_engine

logger = get_logger("engines.diagrams")

# Canonical agents
CENTRAL_BANK = "CB"
SELLER_BANK = "Banks"
BUYER_BANK = "Bankb"
SELLER = "S"
BUYER = "B"

CANONICAL_AGENTS: tuple[str, ...] = (CENTRAL_BANK, SELLER_BANK, BUYER_BANK, SELLER, BUYER)

A = AccountKind.ASSET
L = AccountKind.LIABILITY

# Balance sheet side of every account used by the canonical tables.
ACCOUNT_KINDS: Mapping[str, AccountKind] = MappingProxyType({
    "PaperMoney": A,
    "PaperMoneyCirculation": L,
    "LoansToBanks": A,
    "LoansToBankb": A,
    "DepositsFromBanks": L,
    "DepositsFromBankb": L,
    "CBReserve": A,
    "LoansFromCB": L,
    "Bicycle": A,
    "LiabilityGeneral": L,
    "ReceivableGeneral": A,
    "ReceivableFromBOE": A,
    "LiabilityFromBOE": L,
    "DepositsFromS": L,
    "DepositsAtBanks": A,
    "DepositsAtBankb": A,
    "RetainedEarnings": L,
    "LoansToB": A,
    "LoansFromBankb": L,
})


class EventType(str, Enum):
    """Closed set of canonical monetary events."""

    MONEY_CREATION = "money_creation"
    LOANS = "loans"
    PURCHASE = "purchase"
    BOE_CREATION = "boe_creation"
    BOE_TRANSFER_SELLER_BANK = "boe_transfer_seller_bank"
    BOE_TRANSFER_BUYER_BANK = "boe_transfer_buyer_bank"
    BOE_MATURITY = "boe_maturity"
    SETTLEMENT = "settlement"


class Side(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True, slots=True)
class BookingLine:
    """One row of a booking table."""

    agent: str
    account: str
    kind: AccountKind
    amount: Decimal
    side: Side

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if self.amount < ZERO:
            raise ValueError(f"Booking amount must be non-negative: {self.amount}")

    @property
    def position(self) -> Decimal:
        """Signed amount: debit positive, credit negative."""
        return self.amount if self.side == Side.DEBIT else -self.amount

    @property
    def account_object(self) -> CategoryObject:
        return account_object(self.agent, self.account, self.kind)


def booking_pair(
    agent: str,
    debit_account: str,
    credit_account: str,
    amount: Decimal | int | str,
) -> tuple[BookingLine, BookingLine]:
    """A matched debit/credit of ``amount`` for ``agent``."""
    value = to_decimal(amount)
    return (
        BookingLine(agent, debit_account, ACCOUNT_KINDS[debit_account], value, Side.DEBIT),
        BookingLine(agent, credit_account, ACCOUNT_KINDS[credit_account], value, Side.CREDIT),
    )


# ---------------------------------------------------------------------------
# Booking tables
# ---------------------------------------------------------------------------


def money_creation_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    return booking_pair(CENTRAL_BANK, "PaperMoney", "PaperMoneyCirculation", amount)


def loans_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    return (
        *booking_pair(CENTRAL_BANK, "LoansToBanks", "DepositsFromBanks", amount),
        *booking_pair(SELLER_BANK, "CBReserve", "LoansFromCB", amount),
        *booking_pair(CENTRAL_BANK, "LoansToBankb", "DepositsFromBankb", amount),
        *booking_pair(BUYER_BANK, "CBReserve", "LoansFromCB", amount),
    )


def purchase_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    return (
        *booking_pair(BUYER, "Bicycle", "LiabilityGeneral", amount),
        *booking_pair(SELLER, "ReceivableGeneral", "Bicycle", amount),
    )


def boe_creation_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    return (
        *booking_pair(SELLER, "ReceivableFromBOE", "ReceivableGeneral", amount),
        *booking_pair(BUYER, "LiabilityGeneral", "LiabilityFromBOE", amount),
    )


def boe_transfer_seller_bank_table(
    *, amount: Decimal, discount: Decimal
) -> tuple[BookingLine, ...]:
    """Seller bank discounts the bill: pays ``amount``, books ``discount``."""
    return (
        *booking_pair(SELLER_BANK, "ReceivableFromBOE", "DepositsFromS", amount),
        *booking_pair(SELLER_BANK, "ReceivableFromBOE", "RetainedEarnings", discount),
        *booking_pair(SELLER, "DepositsAtBanks", "ReceivableFromBOE", amount),
        *booking_pair(SELLER, "RetainedEarnings", "ReceivableFromBOE", discount),
    )


def boe_transfer_buyer_bank_table(
    *, amount: Decimal, discount: Decimal
) -> tuple[BookingLine, ...]:
    """Buyer bank buys the bill from the seller bank at ``amount``."""
    return (
        *booking_pair(SELLER_BANK, "DepositsAtBankb", "ReceivableFromBOE", amount),
        *booking_pair(SELLER_BANK, "RetainedEarnings", "ReceivableFromBOE", discount),
        *booking_pair(BUYER_BANK, "ReceivableFromBOE", "DepositsFromBanks", amount),
        *booking_pair(BUYER_BANK, "ReceivableFromBOE", "RetainedEarnings", discount),
    )


def boe_maturity_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    """The buyer honours the bill with a loan from the buyer bank."""
    return (
        *booking_pair(BUYER_BANK, "LoansToB", "ReceivableFromBOE", amount),
        *booking_pair(BUYER, "LiabilityFromBOE", "LoansFromBankb", amount),
    )


def settlement_table(*, amount: Decimal) -> tuple[BookingLine, ...]:
    """Interbank settlement in central bank reserves."""
    return (
        *booking_pair(BUYER_BANK, "DepositsFromBanks", "CBReserve", amount),
        *booking_pair(SELLER_BANK, "CBReserve", "DepositsAtBankb", amount),
        *booking_pair(CENTRAL_BANK, "DepositsFromBankb", "DepositsFromBanks", amount),
    )


BookingTable = Callable[..., tuple[BookingLine, ...]]

_BOOKING_TABLES: Mapping[EventType, BookingTable] = MappingProxyType({
    EventType.MONEY_CREATION: money_creation_table,
    EventType.LOANS: loans_table,
    EventType.PURCHASE: purchase_table,
    EventType.BOE_CREATION: boe_creation_table,
    EventType.BOE_TRANSFER_SELLER_BANK: boe_transfer_seller_bank_table,
    EventType.BOE_TRANSFER_BUYER_BANK: boe_transfer_buyer_bank_table,
    EventType.BOE_MATURITY: boe_maturity_table,
    EventType.SETTLEMENT: settlement_table,
})


def booking_table(event_type: EventType | str) -> BookingTable:
    """Resolve the table factory registered for ``event_type``."""
    try:
        resolved = EventType(event_type)
    except ValueError:
        logger.warning("diagram_unknown_event_type", extra={"event": str(event_type)})
        raise UnknownEventTypeError(str(event_type)) from None
    table = _BOOKING_TABLES.get(resolved)
    if table is None:
        raise UnknownEventTypeError(resolved.value)
    return table


# ---------------------------------------------------------------------------
# Diagram
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinancialDiagram:
    """
    A dated double-entry diagram for one event.

    Contract:
        ``category`` holds one object per booked account and one arrow per
        debit/credit pair; ``entries`` holds the booking lines in table
        order.

    Guarantees:
        - Immutable; value equality over all fields.
        - Every arrow is dated ``event_date``.
    """

    event_type: EventType
    event_date: date
    category: Category
    entries: tuple[BookingLine, ...]

    @property
    def diagram_id(self) -> str:
        return f"{self.event_type.value}@{self.event_date.isoformat()}"

    @property
    def objects(self) -> frozenset[CategoryObject]:
        return self.category.objects

    @property
    def morphisms(self) -> tuple[Morphism, ...]:
        return tuple(self.category.iter_morphisms())

    @property
    def agents(self) -> tuple[str, ...]:
        return tuple(sorted({line.agent for line in self.entries}))

    def positions(self) -> dict[tuple[str, str], Decimal]:
        """Net signed position per (agent, account)."""
        totals: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        for line in self.entries:
            totals[(line.agent, line.account)] += line.position
        return dict(totals)

    def position(self, agent: str, account: str) -> Decimal:
        return self.positions().get((agent, account), ZERO)

    def debits(self, agent: str) -> Decimal:
        return sum(
            (line.amount for line in self.entries if line.agent == agent and line.side == Side.DEBIT),
            ZERO,
        )

    def credits(self, agent: str) -> Decimal:
        return sum(
            (line.amount for line in self.entries if line.agent == agent and line.side == Side.CREDIT),
            ZERO,
        )


def _check_pairs(event_type: EventType, lines: tuple[BookingLine, ...]) -> None:
    if len(lines) % 2:
        raise UnbalancedEntryError(event_type.value, len(lines) - 1, "odd number of rows")
    for i in range(0, len(lines), 2):
        debit, credit = lines[i], lines[i + 1]
        if debit.side != Side.DEBIT or credit.side != Side.CREDIT:
            raise UnbalancedEntryError(event_type.value, i, "expected a debit row then a credit row")
        if debit.agent != credit.agent:
            raise UnbalancedEntryError(
                event_type.value, i, f"agents differ ({debit.agent} / {credit.agent})"
            )
        if debit.amount != credit.amount:
            raise UnbalancedEntryError(
                event_type.value, i, f"amounts differ ({debit.amount} / {credit.amount})"
            )


def diagram_from_lines(
    event_type: EventType | str,
    event_date: date,
    lines: Iterable[BookingLine],
) -> FinancialDiagram:
    """Build a diagram from explicit booking lines.

    Raises:
        UnbalancedEntryError: the lines do not form debit/credit pairs.
    """
    event = EventType(event_type)
    rows = tuple(lines)
    try:
        _check_pairs(event, rows)
    except UnbalancedEntryError as exc:
        logger.warning(
            "diagram_unbalanced_entry",
            extra={"event": event.value, "row_index": exc.row_index, "reason": exc.reason},
        )
        raise

    objects = {line.account_object for line in rows}
    arrows = []
    for n, i in enumerate(range(0, len(rows), 2), start=1):
        debit, credit = rows[i], rows[i + 1]
        arrows.append(
            Morphism(
                source=debit.account_object,
                target=credit.account_object,
                label=f"{event.value}:{debit.agent}:{n}",
                amount=debit.amount,
                date=event_date,
            )
        )
    category = create_category(objects, arrows, name=f"{event.value}@{event_date.isoformat()}")
    return FinancialDiagram(
        event_type=event,
        event_date=event_date,
        category=category,
        entries=rows,
    )


@traced_engine("financial_diagram", "1.0", fingerprint_fields=("event_type", "event_date", "amounts"))
def _build(*, event_type: EventType, event_date: date, amounts: dict[str, Decimal]) -> FinancialDiagram:
    lines = booking_table(event_type)(**amounts)
    return diagram_from_lines(event_type, event_date, lines)


def build_diagram(
    event_type: EventType | str,
    event_date: date,
    **amounts: Decimal | int | str,
) -> FinancialDiagram:
    """Build the canonical diagram for ``event_type``.

    ``amounts`` are the keyword arguments of the event's booking table
    (``amount`` for every event, plus ``discount`` for the two transfers).
    """
    table = booking_table(event_type)
    event = EventType(event_type)
    values = {name: to_decimal(v) for name, v in amounts.items()}
    with LogContext.bind(event_type=event.value):
        diagram = _build(event_type=event, event_date=event_date, amounts=values)
        logger.debug(
            "diagram_built",
            extra={
                "diagram": diagram.diagram_id,
                "table": table.__name__,
                "arrow_count": diagram.category.morphism_count,
            },
        )
    return diagram


# ---------------------------------------------------------------------------
# Convenience builders
# ---------------------------------------------------------------------------


def money_creation_diagram(amount: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.MONEY_CREATION, event_date, amount=amount)


def loans_diagram(amount: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.LOANS, event_date, amount=amount)


def purchase_diagram(price: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.PURCHASE, event_date, amount=price)


def boe_creation_diagram(face_value: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.BOE_CREATION, event_date, amount=face_value)


def boe_transfer_diagram(
    stage: EventType | str,
    event_date: date,
    price: Decimal | int | str,
    face_value: Decimal | int | str,
) -> FinancialDiagram:
    """Transfer of the bill to the seller bank or the buyer bank at ``price``.

    The gap between ``face_value`` and ``price`` is booked to retained
    earnings of the receiving bank (and released by the selling party).
    """
    event = EventType(stage)
    if event not in (EventType.BOE_TRANSFER_SELLER_BANK, EventType.BOE_TRANSFER_BUYER_BANK):
        raise UnknownEventTypeError(event.value)
    price_value = to_decimal(price)
    return build_diagram(
        event,
        event_date,
        amount=price_value,
        discount=to_decimal(face_value) - price_value,
    )


def boe_maturity_diagram(face_value: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.BOE_MATURITY, event_date, amount=face_value)


def settlement_diagram(amount: Decimal | int | str, event_date: date) -> FinancialDiagram:
    return build_diagram(EventType.SETTLEMENT, event_date, amount=amount)


def full_event_sequence(
    initial_money: Decimal | int | str,
    loan_amount: Decimal | int | str,
    purchase_price: Decimal | int | str,
    start_date: date,
) -> tuple[FinancialDiagram, ...]:
    """The six-event cycle on consecutive days from ``start_date``.

    Money creation, loans, purchase, bill creation, transfer of the bill
    to the seller bank at par, and interbank settlement of the price.
    """
    day = timedelta(days=1)
    return (
        money_creation_diagram(initial_money, start_date),
        loans_diagram(loan_amount, start_date + day),
        purchase_diagram(purchase_price, start_date + 2 * day),
        boe_creation_diagram(purchase_price, start_date + 3 * day),
        boe_transfer_diagram(
            EventType.BOE_TRANSFER_SELLER_BANK,
            start_date + 4 * day,
            price=purchase_price,
            face_value=purchase_price,
        ),
        settlement_diagram(purchase_price, start_date + 5 * day),
    )
