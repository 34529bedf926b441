"""
Config -> Engine Bridges.

Functions that convert a ModelConfig into engine and kernel inputs. These
live in moma_config (the producer) because the kernel must NEVER import
moma_config.

Usage:
    from moma_config.bridges import build_boe_terms, build_verifier

    config = get_active_config()
    lifecycle = BoeLifecycle(build_boe_terms(config))
    verifier = build_verifier(config)
"""

from __future__ import annotations

from moma_config.schema import ClaimPairDef, ModelConfig
from moma_engines.boe import BoeTerms, BoeTimeline
from moma_engines.diagrams import FinancialDiagram, full_event_sequence
from moma_engines.invariance import ClaimPair, InvarianceVerifier
from moma_kernel.domain.memory import (
    CoRegulator,
    MemoryComponent,
    create_co_regulator,
    create_memory_component,
)


def build_claim_pair(pair_def: ClaimPairDef) -> ClaimPair:
    """An empty agent list means the side is not restricted by agent."""
    return ClaimPair(
        name=pair_def.name,
        claim_account=pair_def.claim_account,
        liability_account=pair_def.liability_account,
        claim_agents=frozenset(pair_def.claim_agents) if pair_def.claim_agents else None,
        liability_agents=frozenset(pair_def.liability_agents) if pair_def.liability_agents else None,
    )


def build_claim_pairs(config: ModelConfig) -> tuple[ClaimPair, ...]:
    return tuple(build_claim_pair(p) for p in config.claim_pairs)


def build_boe_terms(config: ModelConfig) -> BoeTerms:
    """Build BoeTerms from the ``boe`` section.

    Raises:
        InvalidTimelineOrderError: the configured dates are not strictly
            increasing.
    """
    params = config.boe
    t = params.timeline
    return BoeTerms(
        face_value=params.face_value,
        central_bank_rate=params.central_bank_rate,
        commercial_rate=params.commercial_rate,
        timeline=BoeTimeline(
            delivery=t.delivery,
            creation=t.creation,
            seller_bank=t.seller_bank,
            buyer_bank=t.buyer_bank,
            maturity=t.maturity,
            settlement=t.settlement,
        ),
    )


def build_verifier(config: ModelConfig) -> InvarianceVerifier:
    return InvarianceVerifier(
        claim_pairs=build_claim_pairs(config),
        tolerance=config.verification.tolerance,
        max_path_length=config.verification.max_path_length,
    )


def build_event_sequence(config: ModelConfig) -> tuple[FinancialDiagram, ...]:
    seq = config.event_sequence
    return full_event_sequence(
        initial_money=seq.initial_money,
        loan_amount=seq.loan_amount,
        purchase_price=seq.purchase_price,
        start_date=seq.start_date,
    )


def build_memory_component(config: ModelConfig) -> MemoryComponent:
    return create_memory_component(config.memory.capacity, config.memory.decay_rate)


def build_co_regulator(config: ModelConfig) -> CoRegulator:
    return create_co_regulator(config.co_regulator.threshold, config.co_regulator.decay_rate)
