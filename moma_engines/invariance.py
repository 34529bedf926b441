"""
moma_engines.invariance -- Conservation and law checks over financial diagrams.

Responsibility:
    Checks micro invariance (each agent's debits equal its credits), macro
    invariance (each registered claim/liability pair nets to zero),
    commutativity (parallel paths carry equal amounts), the cocone contract
    of the whole diagram, and the four category laws, and gathers the
    results into one VerificationReport.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on moma_kernel.domain and moma_engines.diagrams.

Invariants enforced:
    - Checks never raise for law failures; failures are LawResult
      diagnostics (InvariantViolation / ToleranceExceeded).
    - Tolerance comparisons are strict: |imbalance| < tolerance passes.
    - Batch verification shares no mutable state between workers.

Failure modes:
    - ValueError for a non-positive tolerance or an empty claim pair.

Audit relevance:
    A report lists every failing law with the agent, claim pair or path
    endpoints involved and the size of the imbalance.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal

from moma_kernel.domain.category import Category, check_category_laws, compose_path
from moma_kernel.domain.objects import ZERO, CategoryObject, Morphism, to_decimal
from moma_kernel.domain.pattern import (
    Pattern,
    calculate_colimit,
    check_colimit,
    create_pattern,
)
from moma_kernel.domain.results import LawResult, ToleranceExceeded
from moma_kernel.invariants import DIAGRAM_LAWS, CategoricalLaw
from moma_kernel.logging_config import LogContext, get_logger
from moma_engines.diagrams import (
    BUYER,
    BUYER_BANK,
    CENTRAL_BANK,
    SELLER,
    SELLER_BANK,
    BookingLine,
    FinancialDiagram,
    Side,
)
from moma_engines.tracer import traced_engine

logger = get_logger("engines.invariance")

DEFAULT_TOLERANCE = Decimal("1e-10")
DEFAULT_MAX_PATH_LENGTH = 8


@dataclass(frozen=True)
class ClaimPair:
    """
    A claim account and the liability account it mirrors.

    Contract:
        ``claim_agents`` / ``liability_agents`` restrict which agents'
        accounts count on each side; None means every agent.

    Guarantees:
        - The claim side and the liability side together net to zero in a
          conserving diagram.
    """

    name: str
    claim_account: str
    liability_account: str
    claim_agents: frozenset[str] | None = None
    liability_agents: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if not self.claim_account or not self.liability_account:
            raise ValueError(f"Claim pair {self.name!r} needs both accounts")
        for attr in ("claim_agents", "liability_agents"):
            value = getattr(self, attr)
            if value is not None and not isinstance(value, frozenset):
                object.__setattr__(self, attr, frozenset(value))

    def is_claim(self, agent: str, account: str) -> bool:
        return account == self.claim_account and (
            self.claim_agents is None or agent in self.claim_agents
        )

    def is_liability(self, agent: str, account: str) -> bool:
        return account == self.liability_account and (
            self.liability_agents is None or agent in self.liability_agents
        )

    def net_position(self, entries: Iterable[BookingLine]) -> Decimal:
        """Claim positions plus liability positions."""
        total = ZERO
        for line in entries:
            if self.is_claim(line.agent, line.account) or self.is_liability(line.agent, line.account):
                total += line.position
        return total

    def matches(self, obj: CategoryObject) -> bool:
        if not obj.is_account:
            return False
        return self.is_claim(obj.agent, obj.account_name) or self.is_liability(
            obj.agent, obj.account_name
        )


def _pair(name, claim, liability, claim_agents=None, liability_agents=None) -> ClaimPair:
    return ClaimPair(
        name=name,
        claim_account=claim,
        liability_account=liability,
        claim_agents=frozenset(claim_agents) if claim_agents else None,
        liability_agents=frozenset(liability_agents) if liability_agents else None,
    )


CANONICAL_CLAIM_PAIRS: tuple[ClaimPair, ...] = (
    _pair("cb_loans_seller_bank", "LoansToBanks", "LoansFromCB", [CENTRAL_BANK], [SELLER_BANK]),
    _pair("cb_loans_buyer_bank", "LoansToBankb", "LoansFromCB", [CENTRAL_BANK], [BUYER_BANK]),
    _pair("reserves_seller_bank", "CBReserve", "DepositsFromBanks", [SELLER_BANK], [CENTRAL_BANK]),
    _pair("reserves_buyer_bank", "CBReserve", "DepositsFromBankb", [BUYER_BANK], [CENTRAL_BANK]),
    _pair("trade_credit", "ReceivableGeneral", "LiabilityGeneral", [SELLER], [BUYER]),
    _pair("bill_of_exchange", "ReceivableFromBOE", "LiabilityFromBOE", None, [BUYER]),
    _pair("seller_deposits", "DepositsAtBanks", "DepositsFromS", [SELLER], [SELLER_BANK]),
    _pair("interbank_deposits", "DepositsAtBankb", "DepositsFromBanks", [SELLER_BANK], [BUYER_BANK]),
    _pair("buyer_loan", "LoansToB", "LoansFromBankb", [BUYER_BANK], [BUYER]),
)


# ---------------------------------------------------------------------------
# Single checks
# ---------------------------------------------------------------------------


def _check_tolerance(tolerance: Decimal | str | float) -> Decimal:
    value = to_decimal(tolerance)
    if value <= ZERO:
        raise ValueError(f"tolerance must be positive, got {value}")
    return value


def check_micro_invariance(
    entries: Iterable[BookingLine],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> LawResult:
    """Per agent, |sum(debits) - sum(credits)| < tolerance."""
    tol = _check_tolerance(tolerance)
    debits: dict[str, Decimal] = defaultdict(lambda: ZERO)
    credits: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for line in entries:
        bucket = debits if line.side == Side.DEBIT else credits
        bucket[line.agent] += line.amount
    agents = sorted(set(debits) | set(credits))
    diagnostics = []
    for agent in agents:
        imbalance = abs(debits[agent] - credits[agent])
        if not imbalance < tol:
            diagnostics.append(
                ToleranceExceeded(
                    law=CategoricalLaw.MICRO_INVARIANCE,
                    subject=agent,
                    imbalance=imbalance,
                    tolerance=tol,
                )
            )
    return LawResult.from_diagnostics(
        CategoricalLaw.MICRO_INVARIANCE, diagnostics, checked=len(agents)
    )


def check_macro_invariance(
    entries: Iterable[BookingLine],
    claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> LawResult:
    """Per claim pair, |sum(claims) + sum(liabilities)| < tolerance."""
    tol = _check_tolerance(tolerance)
    rows = tuple(entries)
    diagnostics = []
    for pair in claim_pairs:
        imbalance = abs(pair.net_position(rows))
        if not imbalance < tol:
            diagnostics.append(
                ToleranceExceeded(
                    law=CategoricalLaw.MACRO_INVARIANCE,
                    subject=pair.name,
                    imbalance=imbalance,
                    tolerance=tol,
                )
            )
    return LawResult.from_diagnostics(
        CategoricalLaw.MACRO_INVARIANCE, diagnostics, checked=len(claim_pairs)
    )


def _simple_paths(
    category: Category,
    max_length: int,
) -> Iterator[tuple[Morphism, ...]]:
    """Every path of non-identity arrows that visits no object twice."""
    outgoing: dict[CategoryObject, list[Morphism]] = defaultdict(list)
    for m in category.iter_morphisms():
        outgoing[m.source].append(m)

    def walk(path: tuple[Morphism, ...], visited: frozenset[CategoryObject]):
        yield path
        if len(path) >= max_length:
            return
        for nxt in outgoing.get(path[-1].target, ()):
            if nxt.target not in visited:
                yield from walk(path + (nxt,), visited | {nxt.target})

    for m in category.iter_morphisms():
        if m.source == m.target:
            yield (m,)
            continue
        yield from walk((m,), frozenset({m.source, m.target}))


def check_commutativity(
    category: Category,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> LawResult:
    """All paths between the same endpoints carry equal resultant amounts."""
    tol = _check_tolerance(tolerance)
    amounts: dict[tuple[CategoryObject, CategoryObject], list[Decimal]] = defaultdict(list)
    for path in _simple_paths(category, max_path_length):
        composite = compose_path(path)
        amounts[composite.endpoints].append(composite.amount)
    diagnostics = []
    for (src, tgt), values in sorted(amounts.items(), key=lambda kv: (kv[0][0].id, kv[0][1].id)):
        spread = max(values) - min(values)
        if not spread < tol:
            diagnostics.append(
                ToleranceExceeded(
                    law=CategoricalLaw.COMMUTATIVITY,
                    subject=f"{src.id} -> {tgt.id}",
                    imbalance=spread,
                    tolerance=tol,
                )
            )
    return LawResult.from_diagnostics(
        CategoricalLaw.COMMUTATIVITY, diagnostics, checked=len(amounts)
    )


def whole_diagram_pattern(category: Category) -> Pattern:
    """The pattern made of every object and every link of ``category``."""
    return create_pattern(category, category.objects, category.morphisms.keys(), name="whole")


def check_universal_property(category: Category) -> LawResult:
    """Cocone contract of the colimit of the whole diagram.

    An empty diagram has no pattern to bind and passes vacuously.
    """
    if not category.objects:
        return LawResult(CategoricalLaw.UNIVERSAL_PROPERTY, passed=True, checked=0)
    pattern = whole_diagram_pattern(category)
    return check_colimit(pattern, calculate_colimit(pattern))


def verify_micro_invariance(diagram: FinancialDiagram, tolerance: Decimal = DEFAULT_TOLERANCE) -> bool:
    return check_micro_invariance(diagram.entries, tolerance).passed


def verify_macro_invariance(
    diagram: FinancialDiagram,
    claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    return check_macro_invariance(diagram.entries, claim_pairs, tolerance).passed


def is_commutative(
    diagram: FinancialDiagram | Category,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    category = diagram if isinstance(diagram, Category) else diagram.category
    return check_commutativity(category, tolerance).passed


def verify_universal_property(diagram: FinancialDiagram | Category) -> bool:
    category = diagram if isinstance(diagram, Category) else diagram.category
    return check_universal_property(category).passed


def emergent_money_patterns(
    diagram: FinancialDiagram | Category,
    claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
) -> tuple[Pattern, ...]:
    """One pattern per claim pair whose both sides appear in ``diagram``.

    The colimit of such a pattern binds a claim to the liability it
    mirrors; complexifying the diagram with these patterns adds the
    emergent money objects.
    """
    category = diagram if isinstance(diagram, Category) else diagram.category
    patterns = []
    for pair in claim_pairs:
        members = [obj for obj in category.objects if pair.matches(obj)]
        has_claim = any(pair.is_claim(o.agent, o.account_name) for o in members)
        has_liability = any(pair.is_liability(o.agent, o.account_name) for o in members)
        if not (has_claim and has_liability):
            continue
        member_set = set(members)
        links = [
            key for key in category.morphisms
            if key[0] in member_set and key[1] in member_set
        ]
        patterns.append(create_pattern(category, members, links, name=f"money:{pair.name}"))
    return tuple(patterns)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationReport:
    """
    Results of every diagram law for one diagram.

    ``results`` holds one LawResult per law in DIAGRAM_LAWS order.
    bool(report) == report.is_valid.
    """

    subject: str
    results: tuple[LawResult, ...]

    @property
    def is_valid(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failed_laws(self) -> tuple[CategoricalLaw, ...]:
        return tuple(r.law for r in self.results if not r.passed)

    @property
    def diagnostics(self) -> tuple:
        return tuple(d for r in self.results for d in r.diagnostics)

    def result(self, law: CategoricalLaw | str) -> LawResult:
        wanted = CategoricalLaw(law)
        for r in self.results:
            if r.law == wanted:
                return r
        raise KeyError(wanted.value)

    def as_dict(self) -> dict[str, bool]:
        return {r.law.value: r.passed for r in self.results}

    def __bool__(self) -> bool:
        return self.is_valid


class InvarianceVerifier:
    """
    Runs every diagram law against financial diagrams.

    Contract:
        Configured once with claim pairs, tolerance and a path length bound;
        stateless afterwards, so one verifier may serve many threads.
    """

    def __init__(
        self,
        claim_pairs: Sequence[ClaimPair] = CANONICAL_CLAIM_PAIRS,
        tolerance: Decimal | str = DEFAULT_TOLERANCE,
        max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
    ):
        self._claim_pairs = tuple(claim_pairs)
        self._tolerance = _check_tolerance(tolerance)
        self._max_path_length = max_path_length

    @property
    def claim_pairs(self) -> tuple[ClaimPair, ...]:
        return self._claim_pairs

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def check_micro_invariance(self, diagram: FinancialDiagram) -> LawResult:
        return check_micro_invariance(diagram.entries, self._tolerance)

    def check_macro_invariance(self, diagram: FinancialDiagram) -> LawResult:
        return check_macro_invariance(diagram.entries, self._claim_pairs, self._tolerance)

    def check_commutativity(self, diagram: FinancialDiagram) -> LawResult:
        return check_commutativity(diagram.category, self._tolerance, self._max_path_length)

    @traced_engine("invariance_verifier", "1.0")
    def run_all_checks(self, diagram: FinancialDiagram) -> VerificationReport:
        """Check every law in DIAGRAM_LAWS and gather the results."""
        with LogContext.bind(diagram_id=diagram.diagram_id, event_type=diagram.event_type.value):
            by_law = {r.law: r for r in check_category_laws(diagram.category)}
            by_law[CategoricalLaw.COMMUTATIVITY] = self.check_commutativity(diagram)
            by_law[CategoricalLaw.UNIVERSAL_PROPERTY] = check_universal_property(diagram.category)
            by_law[CategoricalLaw.MICRO_INVARIANCE] = self.check_micro_invariance(diagram)
            by_law[CategoricalLaw.MACRO_INVARIANCE] = self.check_macro_invariance(diagram)
            report = VerificationReport(
                subject=diagram.diagram_id,
                results=tuple(by_law[law] for law in DIAGRAM_LAWS),
            )
            if report.is_valid:
                logger.debug("diagram_verified", extra={"law_count": len(report.results)})
            else:
                logger.info(
                    "diagram_verification_failed",
                    extra={
                        "failed_laws": [law.value for law in report.failed_laws],
                        "violation_count": len(report.diagnostics),
                    },
                )
        return report

    def verify_many(
        self,
        diagrams: Iterable[FinancialDiagram],
        max_workers: int | None = None,
    ) -> tuple[VerificationReport, ...]:
        """Verify diagrams concurrently; reports come back in input order."""
        batch = tuple(diagrams)
        if not batch:
            return ()
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            reports = tuple(pool.map(self.run_all_checks, batch))
        logger.info(
            "diagram_batch_verified",
            extra={
                "diagram_count": len(batch),
                "failed_count": sum(1 for r in reports if not r.is_valid),
            },
        )
        return reports
