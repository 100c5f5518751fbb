"""
Canonical workflow types (``voicecraft_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, plus the lookup that turns
a ``Workflow`` into a ``(from_state, action) -> Transition`` table.  The
project lifecycle (``domain/project_workflow.py``) is declared with these
types so that legality is decided by data, never by scattered status
comparisons.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* At most one transition per ``(from_state, action)`` pair.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    The service applying the transition evaluates it; an error raised
    because it does not hold carries ``name`` as its ``guard``.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_credits=True`` marks transitions that write to the credit
    ledger in the same unit of work as the status change.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_credits: bool = False

    @property
    def is_self_transition(self) -> bool:
        return self.from_state == self.to_state


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    _table: dict[tuple[str, str], Transition] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state '{self.initial_state}' is not declared"
            )
        table: dict[tuple[str, str], Transition] = {}
        for transition in self.transitions:
            for state in (transition.from_state, transition.to_state):
                if state not in self.states:
                    raise ValueError(f"{self.name}: unknown state '{state}'")
            if transition.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state '{transition.from_state}' "
                    f"has outgoing action '{transition.action}'"
                )
            key = (transition.from_state, transition.action)
            if key in table:
                raise ValueError(f"{self.name}: duplicate transition {key}")
            table[key] = transition
        object.__setattr__(self, "_table", table)

    def resolve(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` from ``from_state``, if legal."""
        return self._table.get((from_state, action))

    def sources_of(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` is legal, in declaration order."""
        return tuple(
            t.from_state for t in self.transitions if t.action == action
        )

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
