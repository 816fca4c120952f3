"""Finite-state-machine helper shared by the order and delivery lifecycles."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Generic, TypeVar

from foodflow.core.errors import InvalidTransitionError

S = TypeVar("S")


class StateMachine(Generic[S]):
    """Maps each state to the set of states directly reachable from it.

    A transition is legal only if the target is a direct successor of the
    current state; same-state moves and skipped states are rejected.
    """

    def __init__(self, transitions: Mapping[S, Iterable[S]]) -> None:
        self._transitions: dict[S, frozenset[S]] = {
            state: frozenset(targets) for state, targets in transitions.items()
        }
        unknown = {t for targets in self._transitions.values() for t in targets} - self._transitions.keys()
        if unknown:
            raise ValueError(f"Transition targets without a table entry: {sorted(map(str, unknown))}")

    @property
    def states(self) -> frozenset[S]:
        return frozenset(self._transitions)

    @property
    def terminal_states(self) -> frozenset[S]:
        return frozenset(state for state, targets in self._transitions.items() if not targets)

    def allowed(self, current: S) -> frozenset[S]:
        return self._transitions.get(current, frozenset())

    def can_transition(self, current: S, target: S) -> bool:
        return target in self.allowed(current)

    def is_terminal(self, state: S) -> bool:
        return not self.allowed(state)

    def ensure_transition(self, current: S, target: S) -> None:
        """Raise ``InvalidTransitionError`` unless ``current -> target`` is an edge."""
        if not self.can_transition(current, target):
            raise InvalidTransitionError(current, target)
