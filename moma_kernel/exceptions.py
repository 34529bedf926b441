"""
Typed Exception Hierarchy for the MOMA Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Diagram construction fails on structural malformation: an arrow whose
endpoint is not an object of its category, a pattern link that does not
exist, two arrows that do not compose. Callers catch these by type and read
structured attributes; they never parse message strings.

Every exception carries:
  1. A TYPED class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable)
  3. Structured DATA as instance attributes

Law checks (associativity, naturality, micro/macro invariance, ...) never
raise. They return results carrying diagnostic values so one report can
aggregate many violations. See moma_kernel.domain.results.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MomaKernelError (base)
    |
    +-- CategoryError
    |   +-- InvalidObjectReferenceError
    |   +-- InvalidLinkReferenceError
    |   +-- CompositionMismatchError
    |
    +-- FunctorError
    |   +-- IncompleteMappingError
    |   +-- FunctorMismatchError
    |
    +-- DiagramError
    |   +-- UnbalancedEntryError
    |   +-- UnknownEventTypeError
    |
    +-- LifecycleError
        +-- InvalidTimelineOrderError
        +-- LifecycleCompletedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                      | When Raised
-----------|---------------------------|----------------------------------------
Category   | INVALID_OBJECT_REFERENCE  | Arrow/pattern names an unknown object
           | INVALID_LINK_REFERENCE    | Pattern link absent from the category
           | COMPOSITION_MISMATCH      | compose(f, g) with f.target != g.source
-----------|---------------------------|----------------------------------------
Functor    | INCOMPLETE_MAPPING        | Object/arrow/component lacks an image
           | FUNCTOR_MISMATCH          | Functors or components do not line up
-----------|---------------------------|----------------------------------------
Diagram    | UNBALANCED_ENTRY          | Booking table rows do not pair up
           | UNKNOWN_EVENT_TYPE        | No booking table registered for event
-----------|---------------------------|----------------------------------------
Lifecycle  | INVALID_TIMELINE_ORDER    | BOE event date out of sequence
           | LIFECYCLE_COMPLETED       | Advancing a settled bill
===============================================================================
"""

from typing import Any


class MomaKernelError(Exception):
    """
    Base exception for all MOMA kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MOMA_KERNEL_ERROR"


# Category-related exceptions


class CategoryError(MomaKernelError):
    """Base exception for category construction errors."""

    code: str = "CATEGORY_ERROR"


class InvalidObjectReferenceError(CategoryError):
    """An arrow, pattern or mapping refers to an object outside its category."""

    code: str = "INVALID_OBJECT_REFERENCE"

    def __init__(self, object_id: str, context: str = ""):
        self.object_id = object_id
        self.context = context
        detail = f" ({context})" if context else ""
        super().__init__(f"Object not in category: {object_id}{detail}")


class InvalidLinkReferenceError(CategoryError):
    """A pattern link is not a key of the parent category's arrow table."""

    code: str = "INVALID_LINK_REFERENCE"

    def __init__(self, source_id: str, target_id: str):
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(f"Link not in category: {source_id} -> {target_id}")


class CompositionMismatchError(CategoryError):
    """compose(f, g) requires f.target == g.source."""

    code: str = "COMPOSITION_MISMATCH"

    def __init__(self, first_label: str, first_target: str,
                 second_label: str, second_source: str):
        self.first_label = first_label
        self.first_target = first_target
        self.second_label = second_label
        self.second_source = second_source
        super().__init__(
            f"Cannot compose {first_label} (target {first_target}) "
            f"with {second_label} (source {second_source})"
        )


# Functor-related exceptions


class FunctorError(MomaKernelError):
    """Base exception for functor and natural transformation errors."""

    code: str = "FUNCTOR_ERROR"


class IncompleteMappingError(FunctorError):
    """
    A functor or natural transformation lacks an image for some element.

    ``missing`` lists the identifiers (object ids or arrow labels) without
    an image, in sorted order.
    """

    code: str = "INCOMPLETE_MAPPING"

    def __init__(self, mapping_name: str, kind: str, missing: list[str]):
        self.mapping_name = mapping_name
        self.kind = kind
        self.missing = missing
        super().__init__(
            f"{mapping_name}: {len(missing)} {kind}(s) without image: "
            f"{', '.join(missing[:5])}"
        )


class FunctorMismatchError(FunctorError):
    """Functors or transformation components do not share the required shape."""

    code: str = "FUNCTOR_MISMATCH"

    def __init__(self, reason: str, **details: Any):
        self.reason = reason
        self.details = details
        super().__init__(reason)


# Diagram-related exceptions


class DiagramError(MomaKernelError):
    """Base exception for financial diagram errors."""

    code: str = "DIAGRAM_ERROR"


class UnbalancedEntryError(DiagramError):
    """A booking table row pair is not a matched debit/credit of one agent."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, event_type: str, row_index: int, reason: str):
        self.event_type = event_type
        self.row_index = row_index
        self.reason = reason
        super().__init__(
            f"Unbalanced booking in {event_type} at row {row_index}: {reason}"
        )


class UnknownEventTypeError(DiagramError):
    """No booking table is registered for the event type."""

    code: str = "UNKNOWN_EVENT_TYPE"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"No booking table registered for event: {event_type}")


# Lifecycle-related exceptions


class LifecycleError(MomaKernelError):
    """Base exception for bill-of-exchange lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTimelineOrderError(LifecycleError):
    """The lifecycle received a date other than the next timeline date."""

    code: str = "INVALID_TIMELINE_ORDER"

    def __init__(self, state: str, expected_date: Any, received_date: Any):
        self.state = state
        self.expected_date = expected_date
        self.received_date = received_date
        super().__init__(
            f"Out-of-sequence date in state {state}: "
            f"expected {expected_date}, received {received_date}"
        )


class LifecycleCompletedError(LifecycleError):
    """The bill is settled; no further transitions exist."""

    code: str = "LIFECYCLE_COMPLETED"

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"No transition out of terminal state {state}")
