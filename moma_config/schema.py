"""
Model configuration schema.

Defines the human-authored, reviewable parameter bundle for a scenario.
YAML files are parsed into these types by the loader; bridges translate
them into engine inputs.

Amounts and rates are kept as strings here and become Decimal only in the
bridges, so the schema never holds a float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class BoeTimelineDef:
    """Event dates of the bill of exchange scenario."""

    delivery: date
    creation: date
    seller_bank: date
    buyer_bank: date
    maturity: date
    settlement: date


@dataclass(frozen=True)
class BoeParameters:
    """Rate/parameter bundle for present-value math."""

    face_value: str
    central_bank_rate: str
    commercial_rate: str
    timeline: BoeTimelineDef


@dataclass(frozen=True)
class EventSequenceParams:
    """Amounts and start date of the six-event cycle."""

    initial_money: str
    loan_amount: str
    purchase_price: str
    start_date: date


@dataclass(frozen=True)
class ClaimPairDef:
    """A claim account and the liability account it mirrors."""

    name: str
    claim_account: str
    liability_account: str
    claim_agents: tuple[str, ...] = ()
    liability_agents: tuple[str, ...] = ()


@dataclass(frozen=True)
class MemoryParams:
    capacity: int = 10
    decay_rate: str = "0.1"


@dataclass(frozen=True)
class CoRegulatorParams:
    threshold: str = "0.5"
    decay_rate: str = "0.1"


@dataclass(frozen=True)
class VerificationParams:
    tolerance: str = "1e-10"
    max_path_length: int = 8


@dataclass(frozen=True)
class ModelConfig:
    """
    One complete scenario configuration.

    ``checksum`` is the SHA-256 of the canonical source mapping and
    identifies the configuration in traces.
    """

    config_id: str
    version: int
    description: str
    boe: BoeParameters
    event_sequence: EventSequenceParams
    claim_pairs: tuple[ClaimPairDef, ...]
    verification: VerificationParams = field(default_factory=VerificationParams)
    memory: MemoryParams = field(default_factory=MemoryParams)
    co_regulator: CoRegulatorParams = field(default_factory=CoRegulatorParams)
    checksum: str = ""
