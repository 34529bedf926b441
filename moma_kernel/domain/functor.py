"""
Functor -- Structure-preserving maps between categories.

Responsibility:
    Builds functors (object map + arrow map) and natural transformations
    between two functors, and checks functoriality and naturality. Also
    provides the micro-to-macro aggregation functor used to lift agent-level
    bookings to sector-level ones.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends on moma_kernel.domain.category.

Invariants enforced:
    - Every source object and every non-identity source arrow has an image.
    - Arrow images live in the target category and connect the images of
      their endpoints.
    - Identities without an explicit image map to the identity of the
      image object.
    - A natural transformation relates two functors with the same source
      and target, with one component F(A) -> G(A) per source object.

Failure modes:
    - IncompleteMappingError for missing images or components.
    - InvalidObjectReferenceError for object images outside the target.
    - FunctorMismatchError for misplaced arrow images or components.

Audit relevance:
    Naturality compares composites by endpoints and resultant amount. The
    composite labels record the path taken and so differ between the two
    sides of a naturality square even when the flows agree.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from moma_kernel.domain.category import (
    Category,
    ObjectRef,
    compose,
    create_category,
)
from moma_kernel.domain.objects import CategoryObject, Morphism
from moma_kernel.domain.results import InvariantViolation, LawResult
from moma_kernel.exceptions import (
    FunctorMismatchError,
    IncompleteMappingError,
    InvalidObjectReferenceError,
)
from moma_kernel.invariants import CategoricalLaw
from moma_kernel.logging_config import get_logger

logger = get_logger("domain.functor")

MACRO_MARKER = "Macro"


@dataclass(frozen=True)
class Functor:
    """
    A map between two categories.

    Contract:
        ``object_map`` covers every source object; ``morphism_map`` covers
        every source arrow, identities included.

    Guarantees:
        - Immutable; maps are read-only.
        - map_object and map_morphism are total on the source category.
    """

    source: Category
    target: Category
    object_map: Mapping[CategoryObject, CategoryObject]
    morphism_map: Mapping[Morphism, Morphism]
    name: str = "F"

    def __hash__(self) -> int:
        return hash((self.name, self.source, self.target, frozenset(self.object_map.items())))

    def map_object(self, obj: ObjectRef) -> CategoryObject:
        return self.object_map[self.source.resolve(obj)]

    def map_morphism(self, morphism: Morphism) -> Morphism:
        image = self.morphism_map.get(morphism)
        if image is None:
            raise IncompleteMappingError(self.name, "morphism", [morphism.label])
        return image

    def __call__(self, item: Morphism | CategoryObject) -> Morphism | CategoryObject:
        if isinstance(item, Morphism):
            return self.map_morphism(item)
        return self.map_object(item)


def create_functor(
    source: Category,
    target: Category,
    object_map: Mapping[ObjectRef, ObjectRef],
    morphism_map: Mapping[Morphism, Morphism],
    name: str = "F",
) -> Functor:
    """Validate and build a functor ``source -> target``.

    Raises:
        IncompleteMappingError: a source object or non-identity arrow has no
            image.
        InvalidObjectReferenceError: an object image is not in ``target``.
        FunctorMismatchError: an arrow image is not an arrow of ``target``
            between the images of its endpoints.
    """
    objects: dict[CategoryObject, CategoryObject] = {}
    for src_ref, tgt_ref in object_map.items():
        objects[source.resolve(src_ref)] = target.resolve(tgt_ref)

    missing_objects = sorted(obj.id for obj in source.objects if obj not in objects)
    if missing_objects:
        logger.warning(
            "functor_incomplete_object_map",
            extra={"functor": name, "missing": missing_objects},
        )
        raise IncompleteMappingError(name, "object", missing_objects)

    missing_arrows = sorted(
        m.label for m in source.iter_morphisms() if m not in morphism_map
    )
    if missing_arrows:
        logger.warning(
            "functor_incomplete_morphism_map",
            extra={"functor": name, "missing": missing_arrows},
        )
        raise IncompleteMappingError(name, "morphism", missing_arrows)

    arrows: dict[Morphism, Morphism] = {}
    for arrow, image in morphism_map.items():
        if not source.contains(arrow):
            raise FunctorMismatchError(
                f"{name}: {arrow.label} is not an arrow of the source category",
                arrow=arrow.label,
            )
        if not target.contains(image):
            raise FunctorMismatchError(
                f"{name}: image of {arrow.label} is not an arrow of the target category",
                arrow=arrow.label,
                image=image.label,
            )
        if image.source != objects[arrow.source] or image.target != objects[arrow.target]:
            raise FunctorMismatchError(
                f"{name}: image of {arrow.label} does not connect the images of its endpoints",
                arrow=arrow.label,
                image=image.label,
            )
        arrows[arrow] = image

    for obj, ident in source.identities.items():
        arrows.setdefault(ident, target.identities[objects[obj]])

    return Functor(
        source=source,
        target=target,
        object_map=MappingProxyType(objects),
        morphism_map=MappingProxyType(arrows),
        name=name,
    )


def find_functoriality_violations(functor: Functor) -> list[InvariantViolation]:
    """Composition and identity preservation failures of ``functor``."""
    law = CategoricalLaw.FUNCTORIALITY
    violations = []
    for f, g in functor.source.composable_pairs():
        composite = compose(f, g)
        if not functor.source.contains(composite):
            continue
        expected = compose(functor.map_morphism(f), functor.map_morphism(g))
        actual = functor.map_morphism(composite)
        if actual != expected:
            violations.append(
                InvariantViolation(
                    law=law,
                    code="COMPOSITION_NOT_PRESERVED",
                    message=f"{functor.name}({composite.label}) != "
                    f"{functor.name}({f.label}) then {functor.name}({g.label})",
                    details={"arrows": [f.label, g.label], "image": actual.label},
                )
            )
    for obj, ident in functor.source.identities.items():
        image_obj = functor.object_map[obj]
        if functor.map_morphism(ident) != functor.target.identities[image_obj]:
            violations.append(
                InvariantViolation(
                    law=law,
                    code="IDENTITY_NOT_PRESERVED",
                    message=f"{functor.name}(id_{obj.id}) is not id_{image_obj.id}",
                    details={"object": obj.id},
                )
            )
    return violations


def check_functoriality(functor: Functor) -> LawResult:
    violations = find_functoriality_violations(functor)
    if violations:
        logger.info(
            "functoriality_failed",
            extra={"functor": functor.name, "violation_count": len(violations)},
        )
    return LawResult.from_diagnostics(
        CategoricalLaw.FUNCTORIALITY,
        violations,
        checked=len(functor.morphism_map),
    )


def verify_functoriality(functor: Functor) -> bool:
    return check_functoriality(functor).passed


# ---------------------------------------------------------------------------
# Natural transformations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NaturalTransformation:
    """
    A family of target arrows ``F(A) -> G(A)``, one per source object.
    """

    source_functor: Functor
    target_functor: Functor
    components: Mapping[CategoryObject, Morphism]
    name: str = "eta"

    def __hash__(self) -> int:
        return hash((self.name, self.source_functor, self.target_functor))

    def component(self, obj: ObjectRef) -> Morphism:
        return self.components[self.source_functor.source.resolve(obj)]


def create_natural_transformation(
    source_functor: Functor,
    target_functor: Functor,
    components: Mapping[ObjectRef, Morphism],
    name: str = "eta",
) -> NaturalTransformation:
    """Validate and build ``name: source_functor => target_functor``.

    Raises:
        FunctorMismatchError: the functors differ in source or target, or a
            component does not run from F(A) to G(A).
        IncompleteMappingError: a source object has no component.
    """
    F, G = source_functor, target_functor
    if F.source != G.source or F.target != G.target:
        logger.warning(
            "natural_transformation_functor_mismatch",
            extra={"transformation": name, "source_functor": F.name, "target_functor": G.name},
        )
        raise FunctorMismatchError(
            f"{name}: {F.name} and {G.name} must share source and target categories",
            source_functor=F.name,
            target_functor=G.name,
        )

    resolved: dict[CategoryObject, Morphism] = {}
    for ref, component in components.items():
        try:
            resolved[F.source.resolve(ref)] = component
        except InvalidObjectReferenceError:
            logger.warning(
                "natural_transformation_foreign_component",
                extra={"transformation": name, "object_id": str(ref)},
            )
            raise

    missing = sorted(obj.id for obj in F.source.objects if obj not in resolved)
    if missing:
        logger.warning(
            "natural_transformation_incomplete",
            extra={"transformation": name, "missing": missing},
        )
        raise IncompleteMappingError(name, "component", missing)

    for obj, component in resolved.items():
        expected = (F.object_map[obj], G.object_map[obj])
        if component.endpoints != expected:
            raise FunctorMismatchError(
                f"{name}: component at {obj.id} must run "
                f"{expected[0].id} -> {expected[1].id}",
                object=obj.id,
                component=component.label,
            )

    return NaturalTransformation(
        source_functor=F,
        target_functor=G,
        components=MappingProxyType(resolved),
        name=name,
    )


def identity_transformation(functor: Functor) -> NaturalTransformation:
    """The transformation ``F => F`` whose components are identities."""
    components = {
        obj: functor.target.identities[image]
        for obj, image in functor.object_map.items()
    }
    return create_natural_transformation(
        functor, functor, components, name=f"id_{functor.name}"
    )


def _square_signature(m: Morphism) -> tuple[Any, ...]:
    return (m.source, m.target, m.amount)


def find_naturality_violations(
    transformation: NaturalTransformation,
) -> list[InvariantViolation]:
    """Naturality squares that do not commute."""
    F = transformation.source_functor
    G = transformation.target_functor
    violations = []
    for f in F.source.iter_morphisms():
        eta_a = transformation.components[f.source]
        eta_b = transformation.components[f.target]
        left = compose(eta_a, G.map_morphism(f))
        right = compose(F.map_morphism(f), eta_b)
        if _square_signature(left) != _square_signature(right):
            violations.append(
                InvariantViolation(
                    law=CategoricalLaw.NATURALITY,
                    code="SQUARE_NOT_COMMUTING",
                    message=f"Naturality square for {f.label} does not commute",
                    details={
                        "arrow": f.label,
                        "left_amount": left.amount,
                        "right_amount": right.amount,
                    },
                )
            )
    return violations


def check_naturality(transformation: NaturalTransformation) -> LawResult:
    violations = find_naturality_violations(transformation)
    if violations:
        logger.info(
            "naturality_failed",
            extra={
                "transformation": transformation.name,
                "violation_count": len(violations),
            },
        )
    return LawResult.from_diagnostics(
        CategoricalLaw.NATURALITY,
        violations,
        checked=transformation.source_functor.source.morphism_count,
    )


def verify_naturality(transformation: NaturalTransformation) -> bool:
    return check_naturality(transformation).passed


# ---------------------------------------------------------------------------
# Micro to macro aggregation
# ---------------------------------------------------------------------------


def aggregate_object(obj: CategoryObject, marker: str = MACRO_MARKER) -> CategoryObject:
    """Prefix the agent (or, for plain objects, the id) with ``marker``."""
    if obj.is_account:
        agent = f"{marker}{obj.agent}"
        return CategoryObject(
            id=f"{agent}.{obj.account_name}",
            agent=agent,
            account_name=obj.account_name,
            kind=obj.kind,
        )
    return CategoryObject(id=f"{marker}{obj.id}")


def micro_macro_functor(
    diagram: Category | Any,
    marker: str = MACRO_MARKER,
) -> Functor:
    """Lift a micro diagram to its macro image.

    ``diagram`` is a Category or any value exposing one as ``.category``
    (a financial diagram). Arrow images keep label, amount and date.
    """
    source = diagram if isinstance(diagram, Category) else diagram.category
    object_map = {obj: aggregate_object(obj, marker) for obj in source.objects}
    morphism_map = {
        m: Morphism(
            source=object_map[m.source],
            target=object_map[m.target],
            label=m.label,
            amount=m.amount,
            date=m.date,
        )
        for m in source.iter_morphisms()
    }
    target = create_category(
        object_map.values(),
        morphism_map.values(),
        name=f"{marker}({source.name})" if source.name else marker,
    )
    return create_functor(
        source,
        target,
        object_map,
        morphism_map,
        name=f"{marker}Functor",
    )
