"""
Categorical Law Contract.

These laws are the structural guarantees every verification report covers.
Construction-time validation (object and link references, composition
endpoints) is not listed here: a malformed diagram never exists, so there is
nothing to verify.

This module only declares the laws. The checks live in
moma_kernel.domain.category, moma_kernel.domain.pattern,
moma_kernel.domain.functor and moma_engines.invariance.
"""

from enum import Enum, unique


@unique
class CategoricalLaw(str, Enum):
    """Laws reported on by the invariance verifier.

    Each value names one check. The string value is the key used in
    verification reports and log records.
    """

    COMPOSITION_CLOSURE = "composition_closure"
    """Every composable pair of arrows has its composite in the table."""

    IDENTITY_EXISTENCE = "identity_existence"
    """Every object has exactly one zero-amount identity arrow."""

    ASSOCIATIVITY = "associativity"
    """compose(compose(f, g), h) == compose(f, compose(g, h))."""

    IDENTITY_LAWS = "identity_laws"
    """compose(id_A, f) == f == compose(f, id_B)."""

    COMMUTATIVITY = "commutativity"
    """All paths between the same endpoints carry the same resultant amount."""

    UNIVERSAL_PROPERTY = "universal_property"
    """The colimit of the whole diagram has a complete cocone."""

    MICRO_INVARIANCE = "micro_invariance"
    """Per agent, debits equal credits within tolerance."""

    MACRO_INVARIANCE = "macro_invariance"
    """Per claim/liability pair, positions net to zero within tolerance."""

    FUNCTORIALITY = "functoriality"
    """F(compose(f, g)) == compose(F(f), F(g)) and F(id_A) == id_F(A)."""

    NATURALITY = "naturality"
    """compose(eta_A, G(f)) agrees with compose(F(f), eta_B)."""


# All laws as a frozenset for programmatic checks.
ALL_CATEGORICAL_LAWS: frozenset[CategoricalLaw] = frozenset(CategoricalLaw)

# Laws covered by a diagram verification report, in report order.
DIAGRAM_LAWS: tuple[CategoricalLaw, ...] = (
    CategoricalLaw.COMPOSITION_CLOSURE,
    CategoricalLaw.IDENTITY_EXISTENCE,
    CategoricalLaw.ASSOCIATIVITY,
    CategoricalLaw.IDENTITY_LAWS,
    CategoricalLaw.COMMUTATIVITY,
    CategoricalLaw.UNIVERSAL_PROPERTY,
    CategoricalLaw.MICRO_INVARIANCE,
    CategoricalLaw.MACRO_INVARIANCE,
)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "moma_engines",
    "moma_config",
)
