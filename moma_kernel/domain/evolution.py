"""
Evolution -- Time-stamped category states of an evolutive system.

An evolutive system is a functor from an ordered timeline into categories:
state ``t`` is the base category relabelled with an ``@t<step>`` suffix and
consecutive states are linked by transition functors. Time enters the
algebra only here, and only as relabelling.
"""

from __future__ import annotations

from dataclasses import dataclass

from moma_kernel.domain.category import Category, create_category
from moma_kernel.domain.functor import Functor, create_functor
from moma_kernel.domain.objects import COMPOSITION_SEPARATOR, CategoryObject, Morphism
from moma_kernel.logging_config import get_logger

logger = get_logger("domain.evolution")

TIME_SUFFIX = "@t"


def stamp_object(obj: CategoryObject, time_step: int) -> CategoryObject:
    return CategoryObject(
        id=f"{obj.id}{TIME_SUFFIX}{time_step}",
        agent=obj.agent,
        account_name=obj.account_name,
        kind=obj.kind,
    )


def stamp_morphism(morphism: Morphism, time_step: int) -> Morphism:
    """Stamp every arrow of a composite label so stamping commutes with compose."""
    return Morphism(
        source=stamp_object(morphism.source, time_step),
        target=stamp_object(morphism.target, time_step),
        label=COMPOSITION_SEPARATOR.join(
            f"{part}{TIME_SUFFIX}{time_step}"
            for part in morphism.label.split(COMPOSITION_SEPARATOR)
        ),
        amount=morphism.amount,
        date=morphism.date,
    )


def evolve_category(category: Category, time_step: int) -> Category:
    """Return ``category`` relabelled for ``time_step``.

    Object ids and arrow labels get an ``@t<time_step>`` suffix; account
    attributes, amounts and dates are kept. The input is not modified.
    """
    if time_step < 0:
        raise ValueError(f"time_step must be non-negative, got {time_step}")
    return create_category(
        (stamp_object(obj, time_step) for obj in category.objects),
        [stamp_morphism(m, time_step) for m in category.iter_morphisms()],
        name=f"{category.name}{TIME_SUFFIX}{time_step}" if category.name else "",
    )


@dataclass(frozen=True)
class EvolutiveSystem:
    """
    Ordered category states built from one base category.

    ``states[t]`` is ``evolve_category(base, t)``. step() returns a new
    system one state longer.
    """

    base: Category
    states: tuple[Category, ...]

    @property
    def horizon(self) -> int:
        """Index of the latest state."""
        return len(self.states) - 1

    def state(self, time_step: int) -> Category:
        return self.states[time_step]

    def step(self) -> EvolutiveSystem:
        next_step = len(self.states)
        logger.debug("evolutive_system_step", extra={"time_step": next_step})
        return EvolutiveSystem(
            base=self.base,
            states=self.states + (evolve_category(self.base, next_step),),
        )

    def transition_functor(self, time_step: int) -> Functor:
        """The functor from state ``time_step`` to state ``time_step + 1``."""
        if not 0 <= time_step < self.horizon:
            raise IndexError(
                f"No transition from step {time_step} (horizon {self.horizon})"
            )
        nxt = time_step + 1
        object_map = {
            stamp_object(obj, time_step): stamp_object(obj, nxt)
            for obj in self.base.objects
        }
        morphism_map = {
            stamp_morphism(m, time_step): stamp_morphism(m, nxt)
            for m in self.base.iter_morphisms()
        }
        return create_functor(
            self.states[time_step],
            self.states[nxt],
            object_map,
            morphism_map,
            name=f"T{time_step}",
        )


def create_evolutive_system(base: Category, steps: int = 0) -> EvolutiveSystem:
    """States ``0..steps`` of the evolutive system generated by ``base``."""
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")
    return EvolutiveSystem(
        base=base,
        states=tuple(evolve_category(base, t) for t in range(steps + 1)),
    )
