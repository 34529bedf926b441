"""
moma_engines.ledger -- Cumulative T-accounts over a sequence of diagrams.

Responsibility:
    Posts financial diagrams into per-(agent, account) debit and credit
    totals, derives agent balance sheets, and reports fractures: claim
    pairs whose cumulative positions no longer net to zero.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on moma_engines.diagrams and moma_engines.invariance.

Invariants enforced:
    - Posting returns a new Ledger (version + 1, previous = prior ledger).
    - An account keeps the balance sheet side it was first booked with.

Failure modes:
    - ValueError when a diagram books an existing account on the other
      balance sheet side.
    - resynchronize logs ledger_fractures_remaining when a write-off
      could not restore every claim pair.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType

from moma_kernel.domain.category import Category, create_category
from moma_kernel.domain.objects import ZERO, AccountKind, Morphism, account_object
from moma_kernel.domain.results import LawResult
from moma_kernel.logging_config import get_logger
from moma_engines.diagrams import BookingLine, EventType, FinancialDiagram, Side, diagram_from_lines
from moma_engines.invariance import (
    CANONICAL_CLAIM_PAIRS,
    DEFAULT_TOLERANCE,
    ClaimPair,
    check_macro_invariance,
    check_micro_invariance,
)

logger = get_logger("engines.ledger")

AccountKey = tuple[str, str]


@dataclass(frozen=True)
class TAccount:
    """Debit and credit totals of one account."""

    agent: str
    account: str
    kind: AccountKind
    debits: Decimal = ZERO
    credits: Decimal = ZERO

    @property
    def position(self) -> Decimal:
        return self.debits - self.credits

    def book(self, line: BookingLine) -> TAccount:
        if line.side == Side.DEBIT:
            return TAccount(self.agent, self.account, self.kind, self.debits + line.amount, self.credits)
        return TAccount(self.agent, self.account, self.kind, self.debits, self.credits + line.amount)


@dataclass(frozen=True)
class BalanceSheet:
    """
    One agent's assets and liabilities.

    Liabilities are shown as positive amounts (the negated position).
    """

    agent: str
    assets: Mapping[str, Decimal]
    liabilities: Mapping[str, Decimal]

    @property
    def total_assets(self) -> Decimal:
        return sum(self.assets.values(), ZERO)

    @property
    def total_liabilities(self) -> Decimal:
        return sum(self.liabilities.values(), ZERO)

    @property
    def net_worth(self) -> Decimal:
        return self.total_assets - self.total_liabilities


@dataclass(frozen=True)
class Ledger:
    """
    Cumulative T-accounts.

    Contract:
        ``accounts`` maps (agent, account) to its TAccount; ``arrows`` keeps
        every booked arrow; ``posted`` lists the diagram ids in posting
        order.
    """

    accounts: Mapping[AccountKey, TAccount] = field(
        default_factory=lambda: MappingProxyType({})
    )
    arrows: tuple[Morphism, ...] = ()
    posted: tuple[str, ...] = ()
    version: int = 0
    previous: Ledger | None = field(default=None, compare=False, repr=False)

    def post(self, diagram: FinancialDiagram) -> Ledger:
        """Return a ledger with ``diagram`` booked."""
        accounts = dict(self.accounts)
        for line in diagram.entries:
            key = (line.agent, line.account)
            current = accounts.get(key)
            if current is None:
                current = TAccount(line.agent, line.account, line.kind)
            elif current.kind != line.kind:
                raise ValueError(
                    f"{line.agent}.{line.account} booked as {line.kind.value}, "
                    f"previously {current.kind.value}"
                )
            accounts[key] = current.book(line)
        logger.debug(
            "ledger_posted",
            extra={"diagram": diagram.diagram_id, "version": self.version + 1},
        )
        return Ledger(
            accounts=MappingProxyType(accounts),
            arrows=self.arrows + diagram.morphisms,
            posted=self.posted + (diagram.diagram_id,),
            version=self.version + 1,
            previous=self,
        )

    def post_all(self, diagrams: Iterable[FinancialDiagram]) -> Ledger:
        ledger = self
        for diagram in diagrams:
            ledger = ledger.post(diagram)
        return ledger

    def position(self, agent: str, account: str) -> Decimal:
        entry = self.accounts.get((agent, account))
        return entry.position if entry is not None else ZERO

    @property
    def agents(self) -> tuple[str, ...]:
        return tuple(sorted({agent for agent, _ in self.accounts}))

    def balance_sheet(self, agent: str) -> BalanceSheet:
        assets: dict[str, Decimal] = {}
        liabilities: dict[str, Decimal] = {}
        for (owner, account), entry in sorted(self.accounts.items()):
            if owner != agent:
                continue
            if entry.kind == AccountKind.ASSET:
                assets[account] = entry.position
            else:
                liabilities[account] = -entry.position
        return BalanceSheet(
            agent=agent,
            assets=MappingProxyType(assets),
            liabilities=MappingProxyType(liabilities),
        )

    def balance_sheets(self) -> dict[str, BalanceSheet]:
        return {agent: self.balance_sheet(agent) for agent in self.agents}

    def as_diagram_entries(self) -> tuple[BookingLine, ...]:
        """Each account's totals as one debit line and one credit line."""
        lines = []
        for (agent, account), entry in sorted(self.accounts.items()):
            lines.append(BookingLine(agent, account, entry.kind, entry.debits, Side.DEBIT))
            lines.append(BookingLine(agent, account, entry.kind, entry.credits, Side.CREDIT))
        return tuple(lines)

    def check_micro_invariance(self, tolerance: Decimal = DEFAULT_TOLERANCE) -> LawResult:
        return check_micro_invariance(self.as_diagram_entries(), tolerance)

    def check_macro_invariance(
        self,
        claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> LawResult:
        return check_macro_invariance(self.as_diagram_entries(), claim_pairs, tolerance)

    def detect_fractures(
        self,
        claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> dict[str, Decimal]:
        """Claim pairs whose positions do not net to zero, with the imbalance."""
        result = self.check_macro_invariance(claim_pairs, tolerance)
        fractures = {d.subject: d.imbalance for d in result.diagnostics}
        if fractures:
            logger.warning(
                "ledger_fractures_detected",
                extra={"fractures": sorted(fractures), "version": self.version},
            )
        return fractures

    def _write_offs(self, pair: ClaimPair, excess: Decimal) -> list[BookingLine]:
        """Settlement lines that remove ``excess`` from the side holding it.

        A positive excess sits on the claim side and is written off by the
        claim holders; a negative one is released by the liability holders.
        Holders are settled largest position first, each down to zero.
        """
        if excess > ZERO:
            holders = [
                entry for (agent, account), entry in self.accounts.items()
                if pair.is_claim(agent, account) and entry.position > ZERO
            ]
            holders.sort(key=lambda e: (-e.position, e.agent))
        else:
            holders = [
                entry for (agent, account), entry in self.accounts.items()
                if pair.is_liability(agent, account) and entry.position < ZERO
            ]
            holders.sort(key=lambda e: (e.position, e.agent))
        remaining = abs(excess)
        lines: list[BookingLine] = []
        for entry in holders:
            if remaining <= ZERO:
                break
            amount = min(remaining, abs(entry.position))
            remaining -= amount
            held = BookingLine(entry.agent, entry.account, entry.kind, amount,
                               Side.CREDIT if excess > ZERO else Side.DEBIT)
            equity = BookingLine(entry.agent, "RetainedEarnings", AccountKind.LIABILITY, amount,
                                 Side.DEBIT if excess > ZERO else Side.CREDIT)
            lines.extend((equity, held) if excess > ZERO else (held, equity))
        return lines

    def resynchronize(
        self,
        on: date,
        claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> Ledger:
        """
        Restore macro invariance by booking a settlement for each fracture.

        Each fractured pair's excess is written off against the holders'
        RetainedEarnings, so every agent stays balanced. Returns ``self``
        when nothing is fractured.
        """
        fractured = self.detect_fractures(claim_pairs, tolerance)
        if not fractured:
            return self
        entries = self.as_diagram_entries()
        lines: list[BookingLine] = []
        for pair in claim_pairs:
            if pair.name in fractured:
                lines.extend(self._write_offs(pair, pair.net_position(entries)))
        repaired = self.post(diagram_from_lines(EventType.SETTLEMENT, on, lines))
        remaining = repaired.detect_fractures(claim_pairs, tolerance)
        if remaining:
            logger.warning(
                "ledger_fractures_remaining",
                extra={"fractures": sorted(remaining), "version": repaired.version},
            )
        else:
            logger.info(
                "ledger_resynchronized",
                extra={"settled": sorted(fractured), "version": repaired.version},
            )
        return repaired

    def as_category(self, name: str = "ledger") -> Category:
        """Every booked account and arrow as one category."""
        objects = {
            account_object(agent, account, entry.kind)
            for (agent, account), entry in self.accounts.items()
        }
        return create_category(objects, self.arrows, name=name)
