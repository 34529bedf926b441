"""
Canonical workflow types (``moma_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines. The bill-of-exchange
lifecycle is declared with these types so its states and transitions are
data, resolved once, rather than branches checked at call time.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition leaves each state (the lifecycle is linear).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the lifecycle engine does.
    """

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A linear state machine definition.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(f"{self.name}: initial state {self.initial_state} not in states")
        seen: set[str] = set()
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.name}: transition {t.action} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has an outgoing transition"
                )
            if t.from_state in seen:
                raise ValueError(f"{self.name}: state {t.from_state} has two transitions")
            seen.add(t.from_state)

    def transition_from(self, state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == state:
                return t
        return None

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
