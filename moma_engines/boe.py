"""
moma_engines.boe -- Bill-of-exchange lifecycle state machine and pricing.

Responsibility:
    Drives a bill of exchange through delivery, creation, acceptance by the
    seller's bank, acceptance by the buyer's bank, maturity and settlement.
    Each transition books the corresponding financial diagram and updates
    the present-value pricing of the bill.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on moma_kernel.domain.workflow and moma_engines.diagrams.

Invariants enforced:
    - The lifecycle is linear and declared once as BOE_WORKFLOW.
    - A transition fires only on the next date of the ordered timeline;
      any other date fails with InvalidTimelineOrderError.
    - SETTLED is terminal; advancing it fails with LifecycleCompletedError.
    - Pricing is Decimal-only: pv = face / (1 + rate * t), t = days / 365.

Failure modes:
    - InvalidTimelineOrderError for an unordered timeline or an
      out-of-sequence date.
    - LifecycleCompletedError when advancing a settled bill.
    - ValueError for a non-positive face value or a negative rate.

Audit relevance:
    run() returns the transaction log as (timestamp, state, diagram)
    triples; transitions() additionally exposes the pricing snapshot that
    each diagram was booked from.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple

from moma_kernel.domain.objects import ZERO, to_decimal
from moma_kernel.domain.workflow import Guard, Transition, Workflow
from moma_kernel.exceptions import InvalidTimelineOrderError, LifecycleCompletedError
from moma_kernel.logging_config import LogContext, get_logger
from moma_engines.diagrams import (
    BUYER_BANK,
    SELLER,
    SELLER_BANK,
    EventType,
    FinancialDiagram,
    boe_creation_diagram,
    boe_maturity_diagram,
    boe_transfer_diagram,
    purchase_diagram,
    settlement_diagram,
)
from moma_engines.tracer import traced_engine

logger = get_logger("engines.boe")

DAYS_PER_YEAR = Decimal("365")
ONE = Decimal("1")
TWO = Decimal("2")


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def year_fraction(start: date, end: date) -> Decimal:
    """Actual/365 year fraction between two dates."""
    return Decimal((end - start).days) / DAYS_PER_YEAR


@traced_engine("boe_present_value", "1.0", fingerprint_fields=("face_value", "rate", "years"))
def _present_value(*, face_value: Decimal, rate: Decimal, years: Decimal) -> Decimal:
    return face_value / (ONE + rate * years)


def present_value(
    face_value: Decimal | int | str,
    rate: Decimal | int | str,
    years: Decimal | int | str,
) -> Decimal:
    """Simple-interest discounting: face / (1 + rate * years)."""
    return _present_value(
        face_value=to_decimal(face_value),
        rate=to_decimal(rate),
        years=to_decimal(years),
    )


@dataclass(frozen=True)
class BoePricing:
    """
    Pricing snapshot of a bill.

    purchase_value and discount are fixed at creation from the commercial
    rate. The central bank fields and the bank earnings are recomputed at
    each bank acceptance for the remaining term. interbank_price is set
    when the buyer's bank takes the bill over.
    """

    face_value: Decimal
    time_to_maturity: Decimal
    purchase_value: Decimal
    discount: Decimal
    central_bank_pv: Decimal | None = None
    central_bank_earning: Decimal = ZERO
    seller_bank_earning: Decimal = ZERO
    buyer_bank_earning: Decimal = ZERO
    interbank_price: Decimal | None = None

    @property
    def commercial_spread(self) -> Decimal:
        return self.seller_bank_earning + self.buyer_bank_earning


def price_at_creation(
    face_value: Decimal,
    commercial_rate: Decimal,
    creation: date,
    maturity: date,
) -> BoePricing:
    years = year_fraction(creation, maturity)
    pv = present_value(face_value, commercial_rate, years)
    return BoePricing(
        face_value=face_value,
        time_to_maturity=years,
        purchase_value=pv,
        discount=face_value - pv,
    )


def price_at_acceptance(
    pricing: BoePricing,
    central_bank_rate: Decimal,
    current: date,
    maturity: date,
) -> BoePricing:
    """Central bank value for the remaining term and the interbank split."""
    years = year_fraction(current, maturity)
    cb_pv = present_value(pricing.face_value, central_bank_rate, years)
    bank_earning = (cb_pv - pricing.purchase_value) / TWO
    return replace(
        pricing,
        time_to_maturity=years,
        central_bank_pv=cb_pv,
        central_bank_earning=pricing.face_value - cb_pv,
        seller_bank_earning=bank_earning,
        buyer_bank_earning=bank_earning,
    )


# ---------------------------------------------------------------------------
# Timeline and terms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoeTimeline:
    """Ordered event dates of one bill."""

    delivery: date
    creation: date
    seller_bank: date
    buyer_bank: date
    maturity: date
    settlement: date

    def __post_init__(self) -> None:
        names = ("delivery", "creation", "seller_bank", "buyer_bank", "maturity", "settlement")
        for earlier, later in zip(names, names[1:]):
            if not getattr(self, earlier) < getattr(self, later):
                raise InvalidTimelineOrderError(
                    f"timeline.{later}", f"after {getattr(self, earlier)}", getattr(self, later)
                )

    @property
    def dates(self) -> tuple[date, ...]:
        return (
            self.delivery,
            self.creation,
            self.seller_bank,
            self.buyer_bank,
            self.maturity,
            self.settlement,
        )


@dataclass(frozen=True)
class BoeTerms:
    """Face value, rates and timeline of one bill."""

    face_value: Decimal
    central_bank_rate: Decimal
    commercial_rate: Decimal
    timeline: BoeTimeline

    def __post_init__(self) -> None:
        for attr in ("face_value", "central_bank_rate", "commercial_rate"):
            object.__setattr__(self, attr, to_decimal(getattr(self, attr)))
        if self.face_value <= ZERO:
            raise ValueError(f"face_value must be positive, got {self.face_value}")
        if self.central_bank_rate < ZERO or self.commercial_rate < ZERO:
            raise ValueError("rates must be non-negative")


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class BoeState(str, Enum):
    INITIAL = "initial"
    DELIVERED = "delivered"
    CREATED = "created"
    ACCEPTED_BY_SELLER_BANK = "accepted_by_seller_bank"
    ACCEPTED_BY_BUYER_BANK = "accepted_by_buyer_bank"
    MATURED = "matured"
    SETTLED = "settled"


_ON_TIMELINE = Guard(
    name="on_timeline",
    description="The current date is the next date of the bill's timeline",
)

BOE_WORKFLOW = Workflow(
    name="bill_of_exchange",
    description="Bill of exchange from delivery of the goods to interbank settlement",
    initial_state=BoeState.INITIAL.value,
    states=tuple(s.value for s in BoeState),
    transitions=(
        Transition(BoeState.INITIAL.value, BoeState.DELIVERED.value, "deliver", _ON_TIMELINE),
        Transition(BoeState.DELIVERED.value, BoeState.CREATED.value, "create", _ON_TIMELINE),
        Transition(
            BoeState.CREATED.value,
            BoeState.ACCEPTED_BY_SELLER_BANK.value,
            "accept_by_seller_bank",
            _ON_TIMELINE,
        ),
        Transition(
            BoeState.ACCEPTED_BY_SELLER_BANK.value,
            BoeState.ACCEPTED_BY_BUYER_BANK.value,
            "accept_by_buyer_bank",
            _ON_TIMELINE,
        ),
        Transition(BoeState.ACCEPTED_BY_BUYER_BANK.value, BoeState.MATURED.value, "mature", _ON_TIMELINE),
        Transition(BoeState.MATURED.value, BoeState.SETTLED.value, "settle", _ON_TIMELINE),
    ),
    terminal_states=(BoeState.SETTLED.value,),
)

# Timeline field that dates the transition into each state.
_STATE_DATES: dict[BoeState, str] = {
    BoeState.DELIVERED: "delivery",
    BoeState.CREATED: "creation",
    BoeState.ACCEPTED_BY_SELLER_BANK: "seller_bank",
    BoeState.ACCEPTED_BY_BUYER_BANK: "buyer_bank",
    BoeState.MATURED: "maturity",
    BoeState.SETTLED: "settlement",
}

# States in the order the timeline visits them.
_ORDER: tuple[BoeState, ...] = tuple(BoeState)

_HOLDERS: dict[BoeState, str] = {
    BoeState.INITIAL: SELLER,
    BoeState.DELIVERED: SELLER,
    BoeState.CREATED: SELLER,
    BoeState.ACCEPTED_BY_SELLER_BANK: SELLER_BANK,
    BoeState.ACCEPTED_BY_BUYER_BANK: BUYER_BANK,
    BoeState.MATURED: BUYER_BANK,
    BoeState.SETTLED: BUYER_BANK,
}


@dataclass(frozen=True)
class BoeSnapshot:
    """Where a bill stands: state, last event date, pricing and holder."""

    state: BoeState
    current_date: date | None = None
    pricing: BoePricing | None = None

    @property
    def holder(self) -> str:
        return _HOLDERS[self.state]

    @property
    def is_settled(self) -> bool:
        return BOE_WORKFLOW.is_terminal(self.state.value)


@dataclass(frozen=True)
class BoeTransition:
    """One fired transition and the diagram it booked."""

    from_state: BoeState
    action: str
    snapshot: BoeSnapshot
    diagram: FinancialDiagram

    @property
    def to_state(self) -> BoeState:
        return self.snapshot.state

    @property
    def event_date(self) -> date:
        return self.diagram.event_date


class BoeLogEntry(NamedTuple):
    timestamp: date
    state: BoeState
    diagram: FinancialDiagram


class BoeLifecycle:
    """
    Pure state machine for one bill of exchange.

    Contract:
        advance(snapshot, current_date) returns the next transition without
        touching ``snapshot``; run() replays the whole timeline.

    Non-goals:
        - Does NOT keep the current state itself; callers thread snapshots.
    """

    workflow = BOE_WORKFLOW

    def __init__(self, terms: BoeTerms):
        self._terms = terms

    @property
    def terms(self) -> BoeTerms:
        return self._terms

    def initial(self) -> BoeSnapshot:
        return BoeSnapshot(state=BoeState(self.workflow.initial_state))

    def expected_date(self, state: BoeState) -> date | None:
        """Date on which ``state`` may be left, or None for a terminal state."""
        transition = self.workflow.transition_from(state.value)
        if transition is None:
            return None
        return getattr(self._terms.timeline, _STATE_DATES[BoeState(transition.to_state)])

    def advance(self, snapshot: BoeSnapshot, current_date: date) -> BoeTransition:
        """Fire the transition due on ``current_date``.

        Raises:
            LifecycleCompletedError: the bill is settled.
            InvalidTimelineOrderError: ``current_date`` is not the next
                timeline date.
        """
        transition = self.workflow.transition_from(snapshot.state.value)
        if transition is None:
            logger.warning("boe_advance_after_settlement", extra={"state": snapshot.state.value})
            raise LifecycleCompletedError(snapshot.state.value)

        target = BoeState(transition.to_state)
        expected = getattr(self._terms.timeline, _STATE_DATES[target])
        if current_date != expected:
            logger.warning(
                "boe_out_of_sequence_date",
                extra={
                    "state": snapshot.state.value,
                    "expected_date": expected,
                    "received_date": current_date,
                },
            )
            raise InvalidTimelineOrderError(snapshot.state.value, expected, current_date)

        pricing = snapshot.pricing
        if pricing is None and _ORDER.index(snapshot.state) >= _ORDER.index(BoeState.CREATED):
            pricing = self._timeline_pricing(snapshot.state)
            logger.debug("boe_pricing_rebuilt", extra={"state": snapshot.state.value})
        pricing = self._reprice(target, current_date, pricing)
        diagram = self._book(target, current_date, pricing)
        new_snapshot = BoeSnapshot(state=target, current_date=current_date, pricing=pricing)
        logger.info(
            "boe_transition",
            extra={
                "from_state": snapshot.state.value,
                "to_state": target.value,
                "action": transition.action,
                "event_date": current_date,
                "holder": new_snapshot.holder,
            },
        )
        return BoeTransition(
            from_state=snapshot.state,
            action=transition.action,
            snapshot=new_snapshot,
            diagram=diagram,
        )

    def _timeline_pricing(self, state: BoeState) -> BoePricing | None:
        """Pricing carried by a bill that reached ``state`` along its timeline."""
        pricing = None
        for step in _ORDER[_ORDER.index(BoeState.CREATED) : _ORDER.index(state) + 1]:
            event_date = getattr(self._terms.timeline, _STATE_DATES[step])
            pricing = self._reprice(step, event_date, pricing)
        return pricing

    def _reprice(
        self,
        target: BoeState,
        current_date: date,
        pricing: BoePricing | None,
    ) -> BoePricing | None:
        terms = self._terms
        match target:
            case BoeState.CREATED:
                return price_at_creation(
                    terms.face_value,
                    terms.commercial_rate,
                    current_date,
                    terms.timeline.maturity,
                )
            case BoeState.ACCEPTED_BY_SELLER_BANK:
                return price_at_acceptance(
                    pricing, terms.central_bank_rate, current_date, terms.timeline.maturity
                )
            case BoeState.ACCEPTED_BY_BUYER_BANK:
                repriced = price_at_acceptance(
                    pricing, terms.central_bank_rate, current_date, terms.timeline.maturity
                )
                return replace(
                    repriced,
                    interbank_price=repriced.purchase_value + repriced.seller_bank_earning,
                )
            case _:
                return pricing

    def _book(
        self,
        target: BoeState,
        current_date: date,
        pricing: BoePricing | None,
    ) -> FinancialDiagram:
        face = self._terms.face_value
        match target:
            case BoeState.DELIVERED:
                return purchase_diagram(face, current_date)
            case BoeState.CREATED:
                return boe_creation_diagram(face, current_date)
            case BoeState.ACCEPTED_BY_SELLER_BANK:
                return boe_transfer_diagram(
                    EventType.BOE_TRANSFER_SELLER_BANK,
                    current_date,
                    price=pricing.purchase_value,
                    face_value=face,
                )
            case BoeState.ACCEPTED_BY_BUYER_BANK:
                return boe_transfer_diagram(
                    EventType.BOE_TRANSFER_BUYER_BANK,
                    current_date,
                    price=pricing.interbank_price,
                    face_value=face,
                )
            case BoeState.MATURED:
                return boe_maturity_diagram(face, current_date)
            case BoeState.SETTLED:
                return settlement_diagram(pricing.interbank_price, current_date)
            case _:
                raise ValueError(f"No diagram for state {target.value}")

    def transitions(self) -> tuple[BoeTransition, ...]:
        """Fire every transition of the timeline in order."""
        snapshot = self.initial()
        fired = []
        with LogContext.bind(scenario=self.workflow.name):
            for event_date in self._terms.timeline.dates:
                step = self.advance(snapshot, event_date)
                fired.append(step)
                snapshot = step.snapshot
        return tuple(fired)

    def run(self) -> tuple[BoeLogEntry, ...]:
        """The transaction log: (timestamp, state, diagram) per transition."""
        return tuple(
            BoeLogEntry(timestamp=t.event_date, state=t.to_state, diagram=t.diagram)
            for t in self.transitions()
        )
