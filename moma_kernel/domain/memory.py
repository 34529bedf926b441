"""
Memory -- Memory, co-regulation, hierarchy and synchronization structures.

Responsibility:
    The memory-evolutive side of the kernel: a bounded memory with decaying
    record strength, a co-regulator activation landscape, a hierarchy of
    complexity levels produced by complexification, and synchronization
    between two patterns.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends on moma_kernel.domain.pattern.

Invariants enforced:
    - Every update returns a new value with ``version`` incremented and
      ``previous`` pointing at the value it was derived from. Nothing is
      copied-then-mutated.
    - A memory never holds more than ``capacity`` records; the oldest are
      evicted first.
    - Decay rates lie in [0, 1].

Failure modes:
    - ValueError for a non-positive capacity or a decay rate outside [0, 1].
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType

from moma_kernel.domain.category import Category
from moma_kernel.domain.objects import ZERO, CategoryObject, to_decimal
from moma_kernel.domain.pattern import Pattern, calculate_colimit

ONE = Decimal("1")


def _check_rate(decay_rate: Decimal) -> Decimal:
    rate = to_decimal(decay_rate)
    if not ZERO <= rate <= ONE:
        raise ValueError(f"decay_rate must lie in [0, 1], got {rate}")
    return rate


# ---------------------------------------------------------------------------
# Memory component
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryRecord:
    """One stored item with its storage date and initial strength."""

    payload: Hashable
    stored_at: date
    strength: Decimal = ONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "strength", to_decimal(self.strength))

    def strength_at(self, now: date, decay_rate: Decimal) -> Decimal:
        """Strength after daily exponential decay until ``now``."""
        days = max((now - self.stored_at).days, 0)
        return self.strength * (ONE - decay_rate) ** days


@dataclass(frozen=True)
class MemoryComponent:
    """
    A bounded memory with variable multiplicity.

    Contract:
        ``capacity`` bounds the record count; ``decay_rate`` is the daily
        fractional loss of record strength.

    Guarantees:
        - store() and consolidate() return new components; ``previous``
          keeps the chain for provenance.
        - The same payload may be stored several times (multiplicity).
    """

    capacity: int
    decay_rate: Decimal
    records: tuple[MemoryRecord, ...] = ()
    version: int = 0
    previous: MemoryComponent | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        object.__setattr__(self, "decay_rate", _check_rate(self.decay_rate))

    def _derive(self, records: tuple[MemoryRecord, ...]) -> MemoryComponent:
        return MemoryComponent(
            capacity=self.capacity,
            decay_rate=self.decay_rate,
            records=records[-self.capacity:],
            version=self.version + 1,
            previous=self,
        )

    def store(
        self,
        payload: Hashable,
        at: date,
        strength: Decimal | int | str = ONE,
    ) -> MemoryComponent:
        """Return a memory that also holds ``payload``."""
        record = MemoryRecord(payload=payload, stored_at=at, strength=strength)
        return self._derive(self.records + (record,))

    def multiplicity(self, payload: Hashable) -> int:
        return sum(1 for r in self.records if r.payload == payload)

    def retrieve(self, payload: Hashable) -> tuple[MemoryRecord, ...]:
        return tuple(r for r in self.records if r.payload == payload)

    def weights(self, now: date) -> tuple[tuple[MemoryRecord, Decimal], ...]:
        """Each record paired with its decayed strength at ``now``."""
        return tuple((r, r.strength_at(now, self.decay_rate)) for r in self.records)

    def forget_below(self, threshold: Decimal, now: date) -> MemoryComponent:
        """Drop records whose decayed strength fell below ``threshold``."""
        limit = to_decimal(threshold)
        kept = tuple(r for r, w in self.weights(now) if w >= limit)
        return self._derive(kept)

    def consolidate(
        self,
        long_term: MemoryComponent,
        threshold: Decimal,
        now: date,
    ) -> MemoryComponent:
        """Copy records still at or above ``threshold`` into ``long_term``."""
        limit = to_decimal(threshold)
        strong = tuple(
            MemoryRecord(payload=r.payload, stored_at=now, strength=w)
            for r, w in self.weights(now)
            if w >= limit
        )
        if not strong:
            return long_term
        return long_term._derive(long_term.records + strong)

    def history(self) -> Iterator[MemoryComponent]:
        """This component and its predecessors, newest first."""
        current: MemoryComponent | None = self
        while current is not None:
            yield current
            current = current.previous


def create_memory_component(capacity: int, decay_rate: Decimal | str | float) -> MemoryComponent:
    return MemoryComponent(capacity=capacity, decay_rate=to_decimal(decay_rate))


# ---------------------------------------------------------------------------
# Co-regulator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CoRegulator:
    """
    An activation landscape with decay.

    update_landscape() first decays every existing activation by
    ``decay_rate`` and then adds the new activations.
    """

    threshold: Decimal
    decay_rate: Decimal
    landscape: Mapping[Hashable, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    version: int = 0
    previous: CoRegulator | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "threshold", to_decimal(self.threshold))
        object.__setattr__(self, "decay_rate", _check_rate(self.decay_rate))
        if not isinstance(self.landscape, MappingProxyType):
            object.__setattr__(
                self,
                "landscape",
                MappingProxyType({k: to_decimal(v) for k, v in self.landscape.items()}),
            )

    def update_landscape(self, activations: Mapping[Hashable, Decimal | int | str]) -> CoRegulator:
        retained = ONE - self.decay_rate
        landscape = {key: value * retained for key, value in self.landscape.items()}
        for key, value in activations.items():
            landscape[key] = landscape.get(key, ZERO) + to_decimal(value)
        return CoRegulator(
            threshold=self.threshold,
            decay_rate=self.decay_rate,
            landscape=MappingProxyType(landscape),
            version=self.version + 1,
            previous=self,
        )

    def activation(self, key: Hashable) -> Decimal:
        return self.landscape.get(key, ZERO)

    def active(self) -> frozenset[Hashable]:
        """Keys whose activation reaches the threshold."""
        return frozenset(k for k, v in self.landscape.items() if v >= self.threshold)


def create_co_regulator(threshold: Decimal | str | float, decay_rate: Decimal | str | float) -> CoRegulator:
    return CoRegulator(threshold=to_decimal(threshold), decay_rate=to_decimal(decay_rate))


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Hierarchy:
    """
    Objects arranged by complexity level, with bindings between levels.

    ``bindings[higher]`` lists the lower-level objects bound into
    ``higher``. Complexity of an object is its level.
    """

    levels: Mapping[int, frozenset[CategoryObject]]
    bindings: Mapping[CategoryObject, tuple[CategoryObject, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def level_of(self, obj: CategoryObject) -> int | None:
        for level, members in self.levels.items():
            if obj in members:
                return level
        return None

    def complexity(self, obj: CategoryObject) -> int:
        level = self.level_of(obj)
        if level is None:
            raise KeyError(obj.id)
        return level

    @property
    def max_level(self) -> int:
        return max(self.levels) if self.levels else 0

    def add_binding(self, lower: CategoryObject, higher: CategoryObject) -> Hierarchy:
        """Record that ``lower`` is bound into ``higher``.

        An object not yet placed goes one level above ``lower``.
        """
        levels = dict(self.levels)
        if self.level_of(lower) is None:
            levels[0] = levels.get(0, frozenset()) | {lower}
        if self.level_of(higher) is None:
            lower_level = self.level_of(lower) or 0
            levels[lower_level + 1] = levels.get(lower_level + 1, frozenset()) | {higher}
        bindings = dict(self.bindings)
        if lower not in bindings.get(higher, ()):
            bindings[higher] = bindings.get(higher, ()) + (lower,)
        return Hierarchy(
            levels=MappingProxyType(levels),
            bindings=MappingProxyType(bindings),
        )


def create_hierarchy(levels: Mapping[int, Iterable[CategoryObject]]) -> Hierarchy:
    return Hierarchy(
        levels=MappingProxyType({lvl: frozenset(objs) for lvl, objs in levels.items()})
    )


def hierarchy_from_complexification(
    category: Category,
    patterns: Iterable[Pattern],
) -> Hierarchy:
    """Levels induced by complexifying ``category`` with ``patterns``.

    Objects of ``category`` sit at level 0. Each binding object sits one
    level above the highest-level object of its pattern.
    """
    levels: dict[int, set[CategoryObject]] = {0: set(category.objects)}
    level_of: dict[CategoryObject, int] = {obj: 0 for obj in category.objects}
    bindings: dict[CategoryObject, tuple[CategoryObject, ...]] = {}
    for pattern in patterns:
        binding = calculate_colimit(pattern).binding_object
        members = tuple(sorted(pattern.objects, key=lambda o: o.id))
        level = 1 + max(level_of.get(obj, 0) for obj in members)
        level_of[binding] = level
        levels.setdefault(level, set()).add(binding)
        bindings[binding] = members
    return Hierarchy(
        levels=MappingProxyType({lvl: frozenset(objs) for lvl, objs in levels.items()}),
        bindings=MappingProxyType(bindings),
    )


# ---------------------------------------------------------------------------
# Synchronization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Synchronization:
    """Two patterns of one category whose colimits evolve together."""

    source_pattern: Pattern
    target_pattern: Pattern

    @property
    def shared_objects(self) -> frozenset[CategoryObject]:
        return self.source_pattern.objects & self.target_pattern.objects


def verify_synchronization(sync: Synchronization) -> bool:
    """Both patterns are non-empty and drawn from the same category."""
    return (
        bool(sync.source_pattern.objects)
        and bool(sync.target_pattern.objects)
        and sync.source_pattern.category == sync.target_pattern.category
    )
