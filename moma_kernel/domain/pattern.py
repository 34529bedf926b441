"""
Pattern -- Sub-diagrams, their colimits and complexification.

Responsibility:
    A Pattern names a sub-diagram of a Category: a subset of its objects and
    a subset of its (source, target) links. calculate_colimit glues a
    pattern into one binding object with a cocone leg from every pattern
    object; complexify folds those binding objects back into a new
    category.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends on moma_kernel.domain.category.

Invariants enforced:
    - Pattern objects are members of the parent category; links are keys of
      its arrow table and connect two pattern objects.
    - The binding object id is ``colimit_`` plus the sorted pattern object
      ids joined by ``_``; equal patterns yield equal colimits whatever the
      insertion order.
    - One zero-amount leg ``m_<id>`` per pattern object.
    - complexify never mutates its input category.

Failure modes:
    - InvalidObjectReferenceError for foreign objects.
    - InvalidLinkReferenceError for links absent from the category.
    - ValueError for an empty pattern.

Audit relevance:
    verify_colimit checks the cocone contract only: every pattern object has
    a leg into the binding object. It does not search for competing cocones,
    so it makes no uniqueness claim about factorisations.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from moma_kernel.domain.category import (
    Category,
    ObjectRef,
    add_morphisms,
    add_object,
)
from moma_kernel.domain.objects import EPOCH, CategoryObject, Morphism
from moma_kernel.domain.results import InvariantViolation, LawResult
from moma_kernel.exceptions import (
    InvalidLinkReferenceError,
    InvalidObjectReferenceError,
)
from moma_kernel.invariants import CategoricalLaw
from moma_kernel.logging_config import get_logger

logger = get_logger("domain.pattern")

COLIMIT_PREFIX = "colimit_"
COCONE_PREFIX = "m_"


@dataclass(frozen=True)
class Pattern:
    """
    A named sub-diagram of a category.

    Contract:
        Holds its parent category by reference; never copies or mutates it.

    Guarantees:
        - objects is a frozenset of members of ``category``
        - links is a frozenset of (source, target) keys of category.morphisms
    """

    category: Category
    objects: frozenset[CategoryObject]
    links: frozenset[tuple[CategoryObject, CategoryObject]]
    name: str = ""

    @property
    def object_ids(self) -> tuple[str, ...]:
        return tuple(sorted(obj.id for obj in self.objects))

    def link_morphisms(self) -> tuple[Morphism, ...]:
        """Every arrow of the parent category filed under a pattern link."""
        return tuple(
            m
            for key in sorted(self.links, key=lambda k: (k[0].id, k[1].id))
            for m in self.category.morphisms.get(key, ())
        )


def create_pattern(
    category: Category,
    objects: Iterable[ObjectRef],
    links: Iterable[tuple[ObjectRef, ObjectRef]] = (),
    name: str | None = None,
) -> Pattern:
    """Validate and build a pattern drawn from ``category``."""
    try:
        members = frozenset(category.resolve(ref) for ref in objects)
    except InvalidObjectReferenceError as exc:
        logger.warning(
            "pattern_invalid_object_reference",
            extra={"object_id": exc.object_id, "pattern": name},
        )
        raise
    if not members:
        raise ValueError("A pattern must contain at least one object")

    resolved_links = set()
    for src_ref, tgt_ref in links:
        src = _link_endpoint(category, src_ref)
        tgt = _link_endpoint(category, tgt_ref)
        if (
            src is None
            or tgt is None
            or (src, tgt) not in category.morphisms
            or src not in members
            or tgt not in members
        ):
            src_id = src_ref.id if isinstance(src_ref, CategoryObject) else src_ref
            tgt_id = tgt_ref.id if isinstance(tgt_ref, CategoryObject) else tgt_ref
            logger.warning(
                "pattern_invalid_link_reference",
                extra={"source": src_id, "target": tgt_id, "pattern": name},
            )
            raise InvalidLinkReferenceError(src_id, tgt_id)
        resolved_links.add((src, tgt))

    pattern_name = name if name is not None else "pattern_" + "_".join(
        sorted(obj.id for obj in members)
    )
    return Pattern(
        category=category,
        objects=members,
        links=frozenset(resolved_links),
        name=pattern_name,
    )


def _link_endpoint(category: Category, ref: ObjectRef) -> CategoryObject | None:
    if isinstance(ref, CategoryObject):
        return ref if ref in category.objects else None
    return category.get_object(ref)


@dataclass(frozen=True)
class Colimit:
    """
    Binding object plus its cocone.

    ``cocone`` maps each pattern object to its leg into ``binding_object``.
    """

    binding_object: CategoryObject
    cocone: Mapping[CategoryObject, Morphism]

    def __hash__(self) -> int:
        return hash((self.binding_object, frozenset(self.cocone.items())))

    @property
    def legs(self) -> tuple[Morphism, ...]:
        return tuple(self.cocone[obj] for obj in sorted(self.cocone, key=lambda o: o.id))


def binding_object_id(objects: Iterable[CategoryObject]) -> str:
    return COLIMIT_PREFIX + "_".join(sorted(obj.id for obj in objects))


def calculate_colimit(pattern: Pattern) -> Colimit:
    """Glue ``pattern`` into a binding object with one leg per object.

    Legs are zero-amount and dated at the latest arrow on a pattern link
    (EPOCH when the pattern has none).
    """
    binding = CategoryObject(id=binding_object_id(pattern.objects))
    dates = [m.date for m in pattern.link_morphisms()]
    leg_date = max(dates) if dates else EPOCH
    cocone = {
        obj: Morphism(
            source=obj,
            target=binding,
            label=f"{COCONE_PREFIX}{obj.id}",
            date=leg_date,
        )
        for obj in sorted(pattern.objects, key=lambda o: o.id)
    }
    logger.debug(
        "colimit_calculated",
        extra={
            "pattern": pattern.name,
            "binding_object": binding.id,
            "leg_count": len(cocone),
        },
    )
    return Colimit(binding_object=binding, cocone=MappingProxyType(cocone))


def check_colimit(pattern: Pattern, colimit: Colimit) -> LawResult:
    """Cocone contract: a leg from every pattern object into the binding object."""
    law = CategoricalLaw.UNIVERSAL_PROPERTY
    diagnostics = []
    expected = binding_object_id(pattern.objects)
    if colimit.binding_object.id != expected:
        diagnostics.append(
            InvariantViolation(
                law=law,
                code="BINDING_OBJECT_MISMATCH",
                message=f"Binding object {colimit.binding_object.id} != {expected}",
                details={"expected": expected, "actual": colimit.binding_object.id},
            )
        )
    for obj in sorted(pattern.objects, key=lambda o: o.id):
        leg = colimit.cocone.get(obj)
        if leg is None or leg.source != obj or leg.target != colimit.binding_object:
            diagnostics.append(
                InvariantViolation(
                    law=law,
                    code="MISSING_COCONE_LEG",
                    message=f"No cocone leg from {obj.id} to {colimit.binding_object.id}",
                    details={"object": obj.id},
                )
            )
    for obj in colimit.cocone:
        if obj not in pattern.objects:
            diagnostics.append(
                InvariantViolation(
                    law=law,
                    code="FOREIGN_COCONE_LEG",
                    message=f"Cocone leg from {obj.id} is not part of the pattern",
                    details={"object": obj.id},
                )
            )
    return LawResult.from_diagnostics(law, diagnostics, checked=len(pattern.objects))


def verify_colimit(pattern: Pattern, colimit: Colimit) -> bool:
    return check_colimit(pattern, colimit).passed


def complexify(category: Category, patterns: Iterable[Pattern]) -> Category:
    """Return a new category with each pattern's colimit folded in.

    Patterns are processed in order, so a later pattern may include the
    binding object of an earlier one.
    """
    result = category
    binding_ids = []
    for pattern in patterns:
        missing = [obj for obj in pattern.objects if obj not in result.objects]
        if missing:
            raise InvalidObjectReferenceError(missing[0].id, f"pattern {pattern.name}")
        colimit = calculate_colimit(pattern)
        result = add_object(result, colimit.binding_object)
        result = add_morphisms(result, colimit.legs)
        binding_ids.append(colimit.binding_object.id)
    logger.info(
        "category_complexified",
        extra={"category": category.name, "binding_objects": binding_ids},
    )
    return result
