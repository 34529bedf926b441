"""
Results -- Diagnostic values returned by law checks.

Law checks never raise. They return a LawResult holding zero or more
diagnostics so a caller can aggregate many violations into one report and
choose severity itself.

Two diagnostic shapes exist:

    InvariantViolation  -- a structural law failed (an arrow pair without a
                           composite, a naturality square that does not
                           commute, a cocone leg that is missing).
    ToleranceExceeded   -- a numeric balance is outside epsilon (per-agent
                           debit/credit, claim/liability netting).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

from moma_kernel.invariants import CategoricalLaw


@dataclass(frozen=True)
class InvariantViolation:
    """One structural law failure.

    ``code`` is machine-readable (e.g. MISSING_COMPOSITE); ``details``
    identifies the arrows or objects involved.
    """

    law: CategoricalLaw
    code: str
    message: str
    details: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ToleranceExceeded:
    """A numeric balance outside tolerance.

    ``subject`` names what was balanced: an agent for micro invariance, a
    claim pair for macro invariance, a path endpoint pair for commutativity.
    """

    law: CategoricalLaw
    subject: str
    imbalance: Decimal
    tolerance: Decimal

    code: str = field(default="TOLERANCE_EXCEEDED", init=False)

    @property
    def message(self) -> str:
        return (
            f"{self.law.value}: {self.subject} off by {self.imbalance} "
            f"(tolerance {self.tolerance})"
        )


Diagnostic = Union[InvariantViolation, ToleranceExceeded]


@dataclass(frozen=True)
class LawResult:
    """
    Result of checking one law.

    Contract:
        passed is True only when there are no diagnostics.

    Guarantees:
        - Immutable (frozen dataclass)
        - diagnostics is always a tuple (never None)
        - bool(result) == result.passed for convenience
    """

    law: CategoricalLaw
    passed: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    checked: int = 0

    @classmethod
    def from_diagnostics(
        cls,
        law: CategoricalLaw,
        diagnostics: tuple[Diagnostic, ...] | list[Diagnostic],
        checked: int = 0,
    ) -> LawResult:
        diagnostics = tuple(diagnostics)
        return cls(
            law=law,
            passed=not diagnostics,
            diagnostics=diagnostics,
            checked=checked,
        )

    def __bool__(self) -> bool:
        return self.passed
