"""
Objects -- Immutable value types for category objects and arrows.

Responsibility:
    Provides the two leaf value types of the algebra: CategoryObject
    (an account, agent or binding object) and Morphism (a dated money
    flow between two objects). Every other kernel module is built on
    these.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    No dependencies beyond the standard library.

Invariants enforced:
    - Amounts are Decimal, never float (coerced via Decimal(str(x))).
    - Dates are datetime.date; identity arrows carry EPOCH.
    - Value identity: two objects (or arrows) with equal fields are equal
      and hash equally.

Failure modes:
    - ValueError on construction with an empty id, an empty label or a
      non-numeric amount.
    - TypeError when date is not a datetime.date.

Audit relevance:
    A Morphism is one booking: its label names the event row that produced
    it, its amount is the booked value and its date the booking date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

# Date assigned to identity arrows and to undated structural arrows.
EPOCH: date = date.min

ZERO = Decimal("0")


class AccountKind(str, Enum):
    """Balance sheet side of an account object."""

    ASSET = "asset"
    LIABILITY = "liability"


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric value to Decimal through its string form."""
    if isinstance(value, Decimal) and value.is_finite():
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class CategoryObject:
    """
    An object of a category.

    Contract:
        Opaque identifier plus optional account attributes. Plain
        structural objects (``A``, ``B``) leave the attributes as None;
        account objects carry agent, account name and kind.

    Guarantees:
        - Immutable and hashable
        - Equality compares id and every attribute

    Non-goals:
        - Does NOT hold balances (see moma_engines.ledger)
    """

    id: str
    agent: str | None = None
    account_name: str | None = None
    kind: AccountKind | None = None

    def __post_init__(self) -> None:
        if not self.id or not isinstance(self.id, str):
            raise ValueError(f"Object id must be a non-empty string: {self.id!r}")
        if self.kind is not None and not isinstance(self.kind, AccountKind):
            object.__setattr__(self, "kind", AccountKind(self.kind))

    @property
    def is_account(self) -> bool:
        return self.agent is not None and self.account_name is not None

    def __str__(self) -> str:
        return self.id


def account_object(
    agent: str,
    account_name: str,
    kind: AccountKind | str,
) -> CategoryObject:
    """Build the account object ``<agent>.<account_name>``."""
    return CategoryObject(
        id=f"{agent}.{account_name}",
        agent=agent,
        account_name=account_name,
        kind=AccountKind(kind),
    )


def as_object(value: CategoryObject | str) -> CategoryObject:
    """Accept a CategoryObject or a bare id."""
    if isinstance(value, CategoryObject):
        return value
    return CategoryObject(id=value)


@dataclass(frozen=True, slots=True)
class Morphism:
    """
    A dated, valued arrow between two objects.

    Contract:
        source -> target, labelled, carrying a Decimal amount and a date.
        Identity arrows have source == target, zero amount, label
        ``id_<object id>`` and date EPOCH.

    Guarantees:
        - Immutable and hashable
        - amount is always Decimal
        - Value equality over all five fields

    Non-goals:
        - Does NOT know which category owns it; membership is checked by
          the Category that stores it.
    """

    source: CategoryObject
    target: CategoryObject
    label: str
    amount: Decimal = ZERO
    date: date = EPOCH

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", as_object(self.source))
        object.__setattr__(self, "target", as_object(self.target))
        if not self.label:
            raise ValueError("Morphism label must be non-empty")
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if isinstance(self.date, datetime):
            object.__setattr__(self, "date", self.date.date())
        elif not isinstance(self.date, date):
            raise TypeError(f"Morphism date must be a date, got {type(self.date).__name__}")

    @property
    def endpoints(self) -> tuple[CategoryObject, CategoryObject]:
        return (self.source, self.target)

    @property
    def is_identity(self) -> bool:
        return (
            self.source == self.target
            and self.amount == ZERO
            and self.label == identity_label(self.source)
        )

    @property
    def path_length(self) -> int:
        """Number of primitive arrows composed into this one."""
        return self.label.count(COMPOSITION_SEPARATOR) + 1

    def __str__(self) -> str:
        return f"{self.label}: {self.source.id} -> {self.target.id} [{self.amount}]"


COMPOSITION_SEPARATOR = "∘"


def identity_label(obj: CategoryObject) -> str:
    return f"id_{obj.id}"


def identity_morphism(obj: CategoryObject) -> Morphism:
    """The identity arrow of ``obj``."""
    return Morphism(source=obj, target=obj, label=identity_label(obj))
