"""
Configuration Loader (``moma_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into typed
``moma_config.schema`` dataclass instances. The single public entry point
for runtime config is ``moma_config.get_active_config()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError``; no silent
  defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from moma_config.schema import (
    BoeParameters,
    BoeTimelineDef,
    ClaimPairDef,
    CoRegulatorParams,
    EventSequenceParams,
    MemoryParams,
    ModelConfig,
    VerificationParams,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal_str(value: Any, field_name: str) -> str:
    """Validate a numeric YAML value and keep its string form.

    YAML floats are converted through ``str`` so ``0.1`` stays ``"0.1"``.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    text = str(value).strip()
    try:
        Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from e
    return text


def parse_timeline(data: dict[str, Any]) -> BoeTimelineDef:
    return BoeTimelineDef(
        delivery=parse_date(data["delivery"]),
        creation=parse_date(data["creation"]),
        seller_bank=parse_date(data["seller_bank"]),
        buyer_bank=parse_date(data["buyer_bank"]),
        maturity=parse_date(data["maturity"]),
        settlement=parse_date(data["settlement"]),
    )


def parse_boe(data: dict[str, Any]) -> BoeParameters:
    rates = data["rates"]
    return BoeParameters(
        face_value=parse_decimal_str(data["face_value"], "boe.face_value"),
        central_bank_rate=parse_decimal_str(rates["central_bank"], "boe.rates.central_bank"),
        commercial_rate=parse_decimal_str(rates["commercial"], "boe.rates.commercial"),
        timeline=parse_timeline(data["timeline"]),
    )


def parse_event_sequence(data: dict[str, Any]) -> EventSequenceParams:
    return EventSequenceParams(
        initial_money=parse_decimal_str(data["initial_money"], "event_sequence.initial_money"),
        loan_amount=parse_decimal_str(data["loan_amount"], "event_sequence.loan_amount"),
        purchase_price=parse_decimal_str(data["purchase_price"], "event_sequence.purchase_price"),
        start_date=parse_date(data["start_date"]),
    )


def parse_claim_pair(data: dict[str, Any]) -> ClaimPairDef:
    return ClaimPairDef(
        name=data["name"],
        claim_account=data["claim"],
        liability_account=data["liability"],
        claim_agents=tuple(data.get("claim_agents", ())),
        liability_agents=tuple(data.get("liability_agents", ())),
    )


def parse_verification(data: dict[str, Any]) -> VerificationParams:
    return VerificationParams(
        tolerance=parse_decimal_str(data.get("tolerance", "1e-10"), "verification.tolerance"),
        max_path_length=int(data.get("max_path_length", 8)),
    )


def parse_memory(data: dict[str, Any]) -> MemoryParams:
    return MemoryParams(
        capacity=int(data.get("capacity", 10)),
        decay_rate=parse_decimal_str(data.get("decay_rate", "0.1"), "memory.decay_rate"),
    )


def parse_co_regulator(data: dict[str, Any]) -> CoRegulatorParams:
    return CoRegulatorParams(
        threshold=parse_decimal_str(data.get("threshold", "0.5"), "co_regulator.threshold"),
        decay_rate=parse_decimal_str(data.get("decay_rate", "0.1"), "co_regulator.decay_rate"),
    )


def parse_model_config(data: dict[str, Any]) -> ModelConfig:
    """Parse a whole configuration mapping.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value is malformed or the claim pair list is empty or
            has duplicate names.
    """
    claim_pairs = tuple(parse_claim_pair(p) for p in data.get("claim_pairs", ()))
    if not claim_pairs:
        raise ValueError("claim_pairs must list at least one pair")
    names = [p.name for p in claim_pairs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate claim pair names: {', '.join(duplicates)}")

    return ModelConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        boe=parse_boe(data["boe"]),
        event_sequence=parse_event_sequence(data["event_sequence"]),
        claim_pairs=claim_pairs,
        verification=parse_verification(data.get("verification", {})),
        memory=parse_memory(data.get("memory", {})),
        co_regulator=parse_co_regulator(data.get("co_regulator", {})),
        checksum=compute_checksum(data),
    )


def load_model_config(path: Path) -> ModelConfig:
    """Load and parse one configuration file."""
    return parse_model_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
