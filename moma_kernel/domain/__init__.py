"""
Pure domain layer.

This package contains the categorical algebra with NO dependencies on:
- Configuration files
- Engines
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from moma_kernel.domain.category import (
    Category,
    add_morphism,
    add_morphisms,
    add_object,
    check_category_laws,
    close_under_composition,
    compose,
    compose_path,
    create_category,
    identity,
    verify_associativity,
    verify_category,
    verify_composition_closure,
    verify_identity_existence,
    verify_identity_laws,
)
from moma_kernel.domain.evolution import (
    EvolutiveSystem,
    create_evolutive_system,
    evolve_category,
)
from moma_kernel.domain.functor import (
    Functor,
    NaturalTransformation,
    create_functor,
    create_natural_transformation,
    identity_transformation,
    micro_macro_functor,
    verify_functoriality,
    verify_naturality,
)
from moma_kernel.domain.memory import (
    CoRegulator,
    Hierarchy,
    MemoryComponent,
    Synchronization,
    create_co_regulator,
    create_hierarchy,
    create_memory_component,
    hierarchy_from_complexification,
    verify_synchronization,
)
from moma_kernel.domain.objects import (
    EPOCH,
    AccountKind,
    CategoryObject,
    Morphism,
    account_object,
)
from moma_kernel.domain.pattern import (
    Colimit,
    Pattern,
    calculate_colimit,
    complexify,
    create_pattern,
    verify_colimit,
)
from moma_kernel.domain.results import (
    InvariantViolation,
    LawResult,
    ToleranceExceeded,
)

__all__ = [
    # Values
    "EPOCH",
    "AccountKind",
    "CategoryObject",
    "Morphism",
    "account_object",
    # Category
    "Category",
    "add_morphism",
    "add_morphisms",
    "add_object",
    "check_category_laws",
    "close_under_composition",
    "compose",
    "compose_path",
    "create_category",
    "identity",
    "verify_associativity",
    "verify_category",
    "verify_composition_closure",
    "verify_identity_existence",
    "verify_identity_laws",
    # Pattern / colimit
    "Colimit",
    "Pattern",
    "calculate_colimit",
    "complexify",
    "create_pattern",
    "verify_colimit",
    # Evolution
    "EvolutiveSystem",
    "create_evolutive_system",
    "evolve_category",
    # Functor
    "Functor",
    "NaturalTransformation",
    "create_functor",
    "create_natural_transformation",
    "identity_transformation",
    "micro_macro_functor",
    "verify_functoriality",
    "verify_naturality",
    # Memory-evolutive structures
    "CoRegulator",
    "Hierarchy",
    "MemoryComponent",
    "Synchronization",
    "create_co_regulator",
    "create_hierarchy",
    "create_memory_component",
    "hierarchy_from_complexification",
    "verify_synchronization",
    # Diagnostics
    "InvariantViolation",
    "LawResult",
    "ToleranceExceeded",
]
