from __future__ import annotations
"""Finite state machine utilities for enforcing allowed status transitions.

Usage:
    from parabellum.utils.fsm import StateMachine, Transition
    FSM = StateMachine(['OPEN', 'CLOSED'], [
        Transition('close', 'OPEN', 'CLOSED', permission='things.close'),
    ])
    step = FSM.resolve(current_status, 'close', can=has_permission)
    obj.status = step.target

Errors are werkzeug HTTP exceptions so route handlers can let them propagate
to the app error handler; non-Flask callers catch them like any exception.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set

from werkzeug.exceptions import BadRequest, Forbidden


class InvalidTransition(BadRequest):
    """The requested transition is not legal from the current state."""


class TransitionForbidden(Forbidden):
    """The transition is legal but the caller lacks its permission."""


@dataclass(frozen=True)
class Transition:
    action: str
    source: str
    target: str
    permission: Optional[str] = None


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def allowed_targets(self, current: str) -> Set[str]:
        return set(self.graph.get(current, set()))

    def is_terminal(self, state: str) -> bool:
        return not self.graph.get(state)

    def assert_can_transition(self, current: str, target: str):
        if target not in self.graph.get(current, set()):
            raise InvalidTransition(description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True


class StateMachine:
    """Named actions over a closed set of states.

    The current state alone decides which actions are legal; each action may
    additionally require a permission that the `can` predicate must grant.
    """

    def __init__(self, states: Iterable[str], transitions: Iterable[Transition], field_name: str = 'status'):
        self.states = tuple(states)
        self.transitions = tuple(transitions)
        self.field_name = field_name
        graph: Dict[str, Set[str]] = {s: set() for s in self.states}
        seen = set()
        for t in self.transitions:
            if t.source not in graph or t.target not in graph:
                raise ValueError(f"Unknown state in transition {t.source} -> {t.target}")
            if (t.source, t.action) in seen:
                raise ValueError(f"Duplicate action {t.action!r} from {t.source}")
            seen.add((t.source, t.action))
            graph[t.source].add(t.target)
        self.validator = TransitionValidator(graph, field_name)

    @property
    def terminal_states(self) -> Set[str]:
        return {s for s in self.states if self.validator.is_terminal(s)}

    def is_terminal(self, state: str) -> bool:
        return self.validator.is_terminal(state)

    def transitions_from(self, state: str) -> List[Transition]:
        return [t for t in self.transitions if t.source == state]

    def find(self, state: str, action: str) -> Transition:
        for t in self.transitions:
            if t.source == state and t.action == action:
                return t
        raise InvalidTransition(description=f"Action {action!r} is not allowed while {self.field_name} is {state}")

    def available(self, state: str, can: Callable[[str], bool], exclude: Iterable[str] = ()) -> List[Transition]:
        """Transitions from `state` the caller may take, in declaration order."""
        skip = set(exclude)
        return [
            t for t in self.transitions_from(state)
            if t.action not in skip and (t.permission is None or can(t.permission))
        ]

    def resolve(self, state: str, action: str, can: Callable[[str], bool]) -> Transition:
        """Return the transition for `action`, or raise before anything changes."""
        t = self.find(state, action)
        if t.permission and not can(t.permission):
            raise TransitionForbidden(description=f"Missing permission {t.permission} for {action}")
        self.validator.assert_can_transition(state, t.target)
        return t


__all__ = ['InvalidTransition', 'TransitionForbidden', 'Transition', 'TransitionValidator', 'StateMachine']
