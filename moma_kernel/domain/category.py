"""
Category -- Objects, arrow table and composition with law checks.

Responsibility:
    Holds an immutable category: an object set, a composition table keyed
    by (source, target) and one identity per object. Provides composition,
    identity lookup, copy-on-write extension and the four category law
    predicates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends on moma_kernel.domain.objects and moma_kernel.domain.results.
    Imported by pattern, functor, evolution and every engine.

Invariants enforced:
    - Every arrow endpoint is a member of ``objects`` (checked at
      construction, InvalidObjectReferenceError otherwise).
    - Every object has exactly one identity arrow (zero amount, EPOCH date).
    - Arrow buckets hold distinct values; adding an equal arrow is a no-op.
    - compose(f, g) requires f.target == g.source.

Failure modes:
    - InvalidObjectReferenceError for unknown endpoints or ambiguous ids.
    - CompositionMismatchError for non-composable pairs.

Audit relevance:
    Composition propagates the first arrow's amount (flow pass-through) and
    the latest date, so a composite booking is traceable to the leg that
    carried the value. Law predicates return diagnostics rather than raise
    so every failure is reported, not only the first.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from moma_kernel.domain.objects import (
    COMPOSITION_SEPARATOR,
    EPOCH,
    CategoryObject,
    Morphism,
    identity_morphism,
)
from moma_kernel.domain.results import InvariantViolation, LawResult
from moma_kernel.exceptions import (
    CompositionMismatchError,
    InvalidObjectReferenceError,
)
from moma_kernel.invariants import CategoricalLaw
from moma_kernel.logging_config import get_logger

logger = get_logger("domain.category")

ObjectRef = CategoryObject | str
ArrowKey = tuple[CategoryObject, CategoryObject]


@dataclass(frozen=True, eq=False)
class Category:
    """
    An immutable small category.

    Contract:
        ``morphisms`` maps (source, target) to the tuple of non-identity
        arrows between them, in insertion order. ``identities`` maps every
        object to its identity arrow. Both are read-only mappings.

    Guarantees:
        - Equality ignores insertion order within a bucket.
        - Hashable; usable as a dict key or set member.
        - Never mutated after construction; every extension returns a new
          Category.

    Non-goals:
        - Does NOT close itself under composition automatically (see
          close_under_composition).
    """

    objects: frozenset[CategoryObject]
    morphisms: Mapping[ArrowKey, tuple[Morphism, ...]]
    identities: Mapping[CategoryObject, Morphism]
    name: str = ""

    # -- lookup ---------------------------------------------------------

    def resolve(self, ref: ObjectRef) -> CategoryObject:
        """Return the member object for ``ref`` (an object or its id)."""
        if isinstance(ref, CategoryObject):
            if ref in self.objects:
                return ref
            raise InvalidObjectReferenceError(ref.id, "not a member")
        for obj in self.objects:
            if obj.id == ref:
                return obj
        raise InvalidObjectReferenceError(ref, "unknown id")

    def get_object(self, object_id: str) -> CategoryObject | None:
        for obj in self.objects:
            if obj.id == object_id:
                return obj
        return None

    def hom(self, source: ObjectRef, target: ObjectRef) -> tuple[Morphism, ...]:
        """Non-identity arrows from ``source`` to ``target``."""
        key = (self.resolve(source), self.resolve(target))
        return self.morphisms.get(key, ())

    def contains(self, morphism: Morphism) -> bool:
        """True if ``morphism`` is stored in this category (by value)."""
        if morphism.is_identity:
            return self.identities.get(morphism.source) == morphism
        return morphism in self.morphisms.get(morphism.endpoints, ())

    def iter_morphisms(self, include_identities: bool = False) -> Iterator[Morphism]:
        """All arrows in deterministic order (sorted by endpoint ids)."""
        if include_identities:
            for obj in sorted(self.objects, key=_object_sort_key):
                yield self.identities[obj]
        for key in sorted(self.morphisms, key=_key_sort_key):
            yield from self.morphisms[key]

    def outgoing(self, obj: CategoryObject) -> tuple[Morphism, ...]:
        return tuple(m for m in self.iter_morphisms() if m.source == obj)

    def composable_pairs(self) -> Iterator[tuple[Morphism, Morphism]]:
        """All (f, g) of non-identity arrows with f.target == g.source."""
        by_source: dict[CategoryObject, list[Morphism]] = defaultdict(list)
        arrows = list(self.iter_morphisms())
        for m in arrows:
            by_source[m.source].append(m)
        for f in arrows:
            for g in by_source.get(f.target, ()):
                yield f, g

    @property
    def morphism_count(self) -> int:
        return sum(len(bucket) for bucket in self.morphisms.values())

    # -- value semantics --------------------------------------------------

    def _bucket_sets(self) -> frozenset[tuple[ArrowKey, frozenset[Morphism]]]:
        return frozenset(
            (key, frozenset(bucket)) for key, bucket in self.morphisms.items() if bucket
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Category):
            return NotImplemented
        return (
            self.objects == other.objects
            and self._bucket_sets() == other._bucket_sets()
        )

    def __hash__(self) -> int:
        return hash((self.objects, self._bucket_sets()))

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return (
            f"Category({label.strip() or '<anonymous>'}: "
            f"{len(self.objects)} objects, {self.morphism_count} arrows)"
        )


def _object_sort_key(obj: CategoryObject) -> tuple[str, str, str, str]:
    return (
        obj.id,
        obj.agent or "",
        obj.account_name or "",
        obj.kind.value if obj.kind else "",
    )


def _key_sort_key(key: ArrowKey) -> tuple:
    return (_object_sort_key(key[0]), _object_sort_key(key[1]))


def _freeze(
    objects: frozenset[CategoryObject],
    table: Mapping[ArrowKey, list[Morphism]],
    name: str,
) -> Category:
    return Category(
        objects=objects,
        morphisms=MappingProxyType(
            {key: tuple(bucket) for key, bucket in table.items() if bucket}
        ),
        identities=MappingProxyType({obj: identity_morphism(obj) for obj in objects}),
        name=name,
    )


def _index_objects(objects: Iterable[ObjectRef]) -> dict[str, CategoryObject]:
    by_id: dict[str, CategoryObject] = {}
    for ref in objects:
        obj = ref if isinstance(ref, CategoryObject) else CategoryObject(id=ref)
        existing = by_id.get(obj.id)
        if existing is not None and existing != obj:
            logger.warning("category_ambiguous_object_id", extra={"object_id": obj.id})
            raise InvalidObjectReferenceError(
                obj.id, "same id with different attributes"
            )
        by_id[obj.id] = obj
    return by_id


def _lookup(by_id: Mapping[str, CategoryObject], ref: ObjectRef, context: str) -> CategoryObject:
    if isinstance(ref, CategoryObject):
        if by_id.get(ref.id) == ref:
            return ref
        raise InvalidObjectReferenceError(ref.id, context)
    obj = by_id.get(ref)
    if obj is None:
        raise InvalidObjectReferenceError(ref, context)
    return obj


def _append_unique(bucket: list[Morphism], morphism: Morphism) -> None:
    if morphism not in bucket:
        bucket.append(morphism)


def create_category(
    objects: Iterable[ObjectRef],
    morphisms: Mapping[tuple[ObjectRef, ObjectRef], Iterable[str | Morphism]]
    | Iterable[Morphism]
    | None = None,
    name: str = "",
) -> Category:
    """Build a category from objects and their arrows.

    ``morphisms`` is either a mapping ``(source, target) -> labels`` (labels
    may also be Morphism values for that pair) or an iterable of Morphisms.
    Endpoints may be given as objects or ids.

    Raises:
        InvalidObjectReferenceError: an endpoint is not in ``objects``.
    """
    by_id = _index_objects(objects)
    table: dict[ArrowKey, list[Morphism]] = defaultdict(list)

    try:
        if isinstance(morphisms, Mapping):
            for (src_ref, tgt_ref), entries in morphisms.items():
                src = _lookup(by_id, src_ref, "arrow source")
                tgt = _lookup(by_id, tgt_ref, "arrow target")
                for entry in entries:
                    if isinstance(entry, Morphism):
                        if entry.endpoints != (src, tgt):
                            raise InvalidObjectReferenceError(
                                entry.source.id if entry.source != src else entry.target.id,
                                f"arrow {entry.label} filed under {src.id} -> {tgt.id}",
                            )
                        m = entry
                    else:
                        m = Morphism(source=src, target=tgt, label=entry)
                    if not m.is_identity:
                        _append_unique(table[(src, tgt)], m)
        elif morphisms is not None:
            for m in morphisms:
                _lookup(by_id, m.source, f"source of {m.label}")
                _lookup(by_id, m.target, f"target of {m.label}")
                if not m.is_identity:
                    _append_unique(table[m.endpoints], m)
    except InvalidObjectReferenceError as exc:
        logger.warning(
            "category_invalid_object_reference",
            extra={"object_id": exc.object_id, "context": exc.context},
        )
        raise

    category = _freeze(frozenset(by_id.values()), table, name)
    logger.debug(
        "category_created",
        extra={
            "category": name,
            "object_count": len(category.objects),
            "morphism_count": category.morphism_count,
        },
    )
    return category


def _mutable_table(category: Category) -> dict[ArrowKey, list[Morphism]]:
    table: dict[ArrowKey, list[Morphism]] = defaultdict(list)
    for key, bucket in category.morphisms.items():
        table[key] = list(bucket)
    return table


def add_object(category: Category, obj: ObjectRef) -> Category:
    """Return a new category that also contains ``obj`` (and its identity)."""
    new_obj = obj if isinstance(obj, CategoryObject) else CategoryObject(id=obj)
    if new_obj in category.objects:
        return category
    clash = category.get_object(new_obj.id)
    if clash is not None:
        raise InvalidObjectReferenceError(new_obj.id, "same id with different attributes")
    return _freeze(category.objects | {new_obj}, _mutable_table(category), category.name)


def add_morphism(
    category: Category,
    source: ObjectRef,
    target: ObjectRef,
    label: str,
    amount: Decimal | int | str = 0,
    date: date = EPOCH,
) -> Category:
    """Return a new category with the arrow appended to its bucket.

    Adding an arrow equal (by value) to one already present returns the
    input unchanged.

    Raises:
        InvalidObjectReferenceError: an endpoint is not in the category.
    """
    try:
        src = category.resolve(source)
        tgt = category.resolve(target)
    except InvalidObjectReferenceError as exc:
        logger.warning(
            "category_invalid_object_reference",
            extra={"object_id": exc.object_id, "context": f"add_morphism {label}"},
        )
        raise
    morphism = Morphism(source=src, target=tgt, label=label, amount=amount, date=date)
    return add_morphisms(category, (morphism,))


def add_morphisms(category: Category, morphisms: Iterable[Morphism]) -> Category:
    """Return a new category with every arrow in ``morphisms`` added."""
    table = _mutable_table(category)
    changed = False
    for m in morphisms:
        if m.source not in category.objects:
            raise InvalidObjectReferenceError(m.source.id, f"source of {m.label}")
        if m.target not in category.objects:
            raise InvalidObjectReferenceError(m.target.id, f"target of {m.label}")
        if m.is_identity or m in table[m.endpoints]:
            continue
        table[m.endpoints].append(m)
        changed = True
    if not changed:
        return category
    return _freeze(category.objects, table, category.name)


def compose(f: Morphism, g: Morphism) -> Morphism:
    """Compose ``f`` then ``g`` (diagrammatic order: source of f, target of g).

    The composite carries ``f.amount`` and the later of the two dates. If
    either operand is an identity, the other operand is returned unchanged.

    Raises:
        CompositionMismatchError: f.target != g.source.
    """
    if f.target != g.source:
        raise CompositionMismatchError(f.label, f.target.id, g.label, g.source.id)
    if f.is_identity:
        return g
    if g.is_identity:
        return f
    return Morphism(
        source=f.source,
        target=g.target,
        label=f"{f.label}{COMPOSITION_SEPARATOR}{g.label}",
        amount=f.amount,
        date=max(f.date, g.date),
    )


def compose_path(path: Iterable[Morphism]) -> Morphism:
    """Compose a non-empty sequence of arrows left to right."""
    iterator = iter(path)
    try:
        result = next(iterator)
    except StopIteration:
        raise ValueError("Cannot compose an empty path") from None
    for m in iterator:
        result = compose(result, m)
    return result


def identity(category: Category, obj: ObjectRef) -> Morphism:
    """The identity arrow of ``obj`` in ``category``."""
    return category.identities[category.resolve(obj)]


def close_under_composition(category: Category, max_path_length: int = 8) -> Category:
    """Add the composite of every composable pair until nothing new appears.

    Composites longer than ``max_path_length`` primitive arrows are not
    added, which bounds the result for categories with cycles.
    """
    current = category
    while True:
        missing = [
            c
            for f, g in current.composable_pairs()
            if f.path_length + g.path_length <= max_path_length
            and not current.contains(c := compose(f, g))
        ]
        if not missing:
            return current
        current = add_morphisms(current, missing)


# ---------------------------------------------------------------------------
# Law checks
# ---------------------------------------------------------------------------


def find_composition_closure_violations(
    category: Category,
) -> list[tuple[Morphism, Morphism]]:
    """Composable pairs whose composite is missing from the table."""
    return [
        (f, g)
        for f, g in category.composable_pairs()
        if not category.contains(compose(f, g))
    ]


def find_missing_identities(category: Category) -> list[CategoryObject]:
    """Objects without a well-formed identity arrow."""
    missing = []
    for obj in sorted(category.objects, key=_object_sort_key):
        ident = category.identities.get(obj)
        if ident is None or ident.source != obj or ident.target != obj or ident.amount != 0:
            missing.append(obj)
    return missing


def find_associativity_violations(
    category: Category,
) -> list[tuple[Morphism, Morphism, Morphism]]:
    """Composable triples where the two bracketings disagree."""
    by_source: dict[CategoryObject, list[Morphism]] = defaultdict(list)
    for m in category.iter_morphisms(include_identities=True):
        by_source[m.source].append(m)
    violations = []
    for f in category.iter_morphisms(include_identities=True):
        for g in by_source.get(f.target, ()):
            for h in by_source.get(g.target, ()):
                if compose(compose(f, g), h) != compose(f, compose(g, h)):
                    violations.append((f, g, h))
    return violations


def find_identity_law_violations(category: Category) -> list[Morphism]:
    """Arrows for which id_A . f == f == f . id_B fails."""
    violations = []
    for f in category.iter_morphisms():
        left = compose(category.identities[f.source], f)
        right = compose(f, category.identities[f.target])
        if left != f or right != f:
            violations.append(f)
    return violations


def verify_composition_closure(category: Category) -> bool:
    return not find_composition_closure_violations(category)


def verify_identity_existence(category: Category) -> bool:
    return not find_missing_identities(category)


def verify_associativity(category: Category) -> bool:
    return not find_associativity_violations(category)


def verify_identity_laws(category: Category) -> bool:
    return not find_identity_law_violations(category)


def verify_category(category: Category) -> bool:
    """All four category laws hold."""
    return all(result.passed for result in check_category_laws(category))


def _labels(*arrows: Morphism) -> dict[str, Any]:
    return {"arrows": [m.label for m in arrows]}


def check_category_laws(category: Category) -> tuple[LawResult, ...]:
    """Run the four category law checks and return one LawResult each."""
    closure = find_composition_closure_violations(category)
    missing = find_missing_identities(category)
    assoc = find_associativity_violations(category)
    ident = find_identity_law_violations(category)

    results = (
        LawResult.from_diagnostics(
            CategoricalLaw.COMPOSITION_CLOSURE,
            [
                InvariantViolation(
                    law=CategoricalLaw.COMPOSITION_CLOSURE,
                    code="MISSING_COMPOSITE",
                    message=f"No composite for {f.label} then {g.label}",
                    details={
                        "source": f.source.id,
                        "target": g.target.id,
                        **_labels(f, g),
                    },
                )
                for f, g in closure
            ],
            checked=sum(1 for _ in category.composable_pairs()),
        ),
        LawResult.from_diagnostics(
            CategoricalLaw.IDENTITY_EXISTENCE,
            [
                InvariantViolation(
                    law=CategoricalLaw.IDENTITY_EXISTENCE,
                    code="MISSING_IDENTITY",
                    message=f"Object {obj.id} has no identity arrow",
                    details={"object": obj.id},
                )
                for obj in missing
            ],
            checked=len(category.objects),
        ),
        LawResult.from_diagnostics(
            CategoricalLaw.ASSOCIATIVITY,
            [
                InvariantViolation(
                    law=CategoricalLaw.ASSOCIATIVITY,
                    code="NON_ASSOCIATIVE",
                    message=f"Bracketings differ for {f.label}, {g.label}, {h.label}",
                    details=_labels(f, g, h),
                )
                for f, g, h in assoc
            ],
        ),
        LawResult.from_diagnostics(
            CategoricalLaw.IDENTITY_LAWS,
            [
                InvariantViolation(
                    law=CategoricalLaw.IDENTITY_LAWS,
                    code="IDENTITY_LAW_FAILED",
                    message=f"Identity composition changes {f.label}",
                    details=_labels(f),
                )
                for f in ident
            ],
            checked=category.morphism_count,
        ),
    )

    failed = [r.law.value for r in results if not r.passed]
    if failed:
        logger.info(
            "category_laws_failed",
            extra={"category": category.name, "failed_laws": failed},
        )
    return results
