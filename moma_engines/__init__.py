"""
Module: moma_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines built on the categorical kernel.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import moma_kernel (and sibling engine modules).
    MUST NOT import moma_config; callers pass configuration in.

Invariants enforced:
    - Purity: engines NEVER call ``date.today()``. Event dates are passed in.
    - Decimal-only arithmetic: all amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Diagram building, pricing and verification are traced via the
    ``@traced_engine`` decorator (see ``moma_engines.tracer``), emitting
    MOMA_ENGINE_TRACE log records.

Usage:
    from moma_engines.diagrams import money_creation_diagram
    from moma_engines.invariance import InvarianceVerifier
    from moma_engines.boe import BoeLifecycle, BoeTerms
    from moma_engines.ledger import Ledger
"""

from moma_kernel.logging_config import get_logger

logger = get_logger("engines")

from moma_engines.boe import (
    BOE_WORKFLOW,
    BoeLifecycle,
    BoeLogEntry,
    BoePricing,
    BoeSnapshot,
    BoeState,
    BoeTerms,
    BoeTimeline,
    BoeTransition,
    present_value,
    year_fraction,
)
from moma_engines.diagrams import (
    BookingLine,
    EventType,
    FinancialDiagram,
    Side,
    boe_creation_diagram,
    boe_maturity_diagram,
    boe_transfer_diagram,
    build_diagram,
    full_event_sequence,
    loans_diagram,
    money_creation_diagram,
    purchase_diagram,
    settlement_diagram,
)
from moma_engines.invariance import (
    CANONICAL_CLAIM_PAIRS,
    DEFAULT_TOLERANCE,
    ClaimPair,
    InvarianceVerifier,
    VerificationReport,
    emergent_money_patterns,
    is_commutative,
    verify_macro_invariance,
    verify_micro_invariance,
    verify_universal_property,
)
from moma_engines.ledger import BalanceSheet, Ledger, TAccount
from moma_engines.tracer import traced_engine

__all__ = [
    # Diagrams
    "BookingLine",
    "EventType",
    "FinancialDiagram",
    "Side",
    "boe_creation_diagram",
    "boe_maturity_diagram",
    "boe_transfer_diagram",
    "build_diagram",
    "full_event_sequence",
    "loans_diagram",
    "money_creation_diagram",
    "purchase_diagram",
    "settlement_diagram",
    # Bill of exchange
    "BOE_WORKFLOW",
    "BoeLifecycle",
    "BoeLogEntry",
    "BoePricing",
    "BoeSnapshot",
    "BoeState",
    "BoeTerms",
    "BoeTimeline",
    "BoeTransition",
    "present_value",
    "year_fraction",
    # Invariance
    "CANONICAL_CLAIM_PAIRS",
    "DEFAULT_TOLERANCE",
    "ClaimPair",
    "InvarianceVerifier",
    "VerificationReport",
    "emergent_money_patterns",
    "is_commutative",
    "verify_macro_invariance",
    "verify_micro_invariance",
    "verify_universal_property",
    # Ledger
    "BalanceSheet",
    "Ledger",
    "TAccount",
    # Tracing
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 5,
    "modules": ["diagrams", "boe", "invariance", "ledger", "tracer"],
})
