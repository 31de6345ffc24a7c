# Overview: Workflow definitions and the immutable registry of entity lifecycles.

"""
Workflow Registry

================================================================================
PURPOSE: One declarative transition table per entity type, looked up by name
================================================================================

WHY THIS EXISTS:
- Nineteen unrelated entity types (reservations, repair orders, legal cases, ...)
  all need "can X move from A to B" answered the same way
- Rules are data (a table per entity), the mechanism (transition_service) is shared
- New entity types need only a new table

STATE SHAPES:
    Active(successors)   at least one outgoing transition
    TERMINAL             no outgoing transitions (only the same-state no-op)

Terminality is declared, never inferred: an Active state with an empty successor
set is a definition error, so a half-written table cannot silently create a dead end.

CONSTRUCTION RULES (checked once, at start-up):
1. Every successor must itself be a declared state
2. No state lists itself as a successor (same-state is the validator's no-op)
3. The initial state must be declared
4. Registry keys match workflow names

The registry is built once per process and passed to whoever needs it
(app.extensions, CLI, tests). Nothing mutates it afterwards.
================================================================================
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Union


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow table is internally inconsistent."""


class UnknownWorkflowError(KeyError):
    """Raised when no workflow is registered for an entity type."""

    def __init__(self, entity_type: str):
        super().__init__(entity_type)
        self.entity_type = entity_type

    def __str__(self) -> str:
        return f"Unknown workflow '{self.entity_type}'"


@dataclass(frozen=True, init=False)
class Active:
    """A state with at least one outgoing transition, in declaration order."""
    successors: tuple[str, ...]

    def __init__(self, *successors: str):
        object.__setattr__(self, "successors", tuple(successors))

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class Terminal:
    """A state with no outgoing transitions."""
    successors: tuple[str, ...] = field(default=(), init=False)

    @property
    def is_terminal(self) -> bool:
        return True


TERMINAL = Terminal()

StateSpec = Union[Active, Terminal]


class Workflow:
    """
    Immutable transition table for one entity type.

    Args:
        name: entity type identifier, e.g. "repair_order"
        initial: state new records start in
        states: mapping of state name -> Active(...) or TERMINAL
    """

    __slots__ = ("name", "initial", "_states", "_successor_sets")

    def __init__(self, name: str, *, initial: str, states: Mapping[str, StateSpec]):
        if not name:
            raise WorkflowDefinitionError("Workflow name is required")
        if not states:
            raise WorkflowDefinitionError(f"Workflow '{name}' declares no states")

        for state, spec in states.items():
            if not isinstance(spec, (Active, Terminal)):
                raise WorkflowDefinitionError(
                    f"Workflow '{name}': state '{state}' must be Active(...) or TERMINAL"
                )
            if isinstance(spec, Active) and not spec.successors:
                raise WorkflowDefinitionError(
                    f"Workflow '{name}': state '{state}' is Active but has no successors; "
                    f"declare it TERMINAL if it is final"
                )
            for target in spec.successors:
                if target == state:
                    raise WorkflowDefinitionError(
                        f"Workflow '{name}': state '{state}' lists itself as a successor"
                    )
                if target not in states:
                    raise WorkflowDefinitionError(
                        f"Workflow '{name}': transition '{state}' -> '{target}' targets an undeclared state"
                    )

        if initial not in states:
            raise WorkflowDefinitionError(
                f"Workflow '{name}': initial state '{initial}' is not declared"
            )

        self.name = name
        self.initial = initial
        self._states = MappingProxyType(dict(states))
        self._successor_sets = MappingProxyType(
            {state: frozenset(spec.successors) for state, spec in states.items()}
        )

    @property
    def states(self) -> Mapping[str, StateSpec]:
        return self._states

    def has_state(self, state: str) -> bool:
        return state in self._states

    def successors(self, state: str) -> tuple[str, ...]:
        """Declared successors of state in declaration order; () for terminal or unknown states."""
        spec = self._states.get(state)
        return spec.successors if spec is not None else ()

    def allows(self, current: str, requested: str) -> bool:
        """Membership test over the successor set; no same-state rule here."""
        allowed = self._successor_sets.get(current)
        return allowed is not None and requested in allowed

    def is_terminal(self, state: str) -> bool:
        spec = self._states.get(state)
        return spec is not None and spec.is_terminal

    def terminal_states(self) -> list[str]:
        return [state for state, spec in self._states.items() if spec.is_terminal]

    def to_dict(self) -> dict:
        return {
            "entity_type": self.name,
            "initial": self.initial,
            "states": [
                {
                    "state": state,
                    "terminal": spec.is_terminal,
                    "successors": list(spec.successors),
                }
                for state, spec in self._states.items()
            ],
        }

    def __repr__(self) -> str:
        return f"<Workflow {self.name!r} states={len(self._states)}>"


class WorkflowRegistry(Mapping):
    """
    Read-only mapping of entity type -> Workflow.

    Lookups of unregistered entity types raise UnknownWorkflowError (a KeyError),
    so `entity_type in registry` and `registry.get(...)` behave like a dict.
    """

    def __init__(self, workflows):
        table: dict[str, Workflow] = {}
        for workflow in workflows:
            if workflow.name in table:
                raise WorkflowDefinitionError(f"Workflow '{workflow.name}' registered twice")
            table[workflow.name] = workflow
        self._workflows = MappingProxyType(table)

    def __getitem__(self, entity_type: str) -> Workflow:
        try:
            return self._workflows[entity_type]
        except KeyError:
            raise UnknownWorkflowError(entity_type) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._workflows)

    def __len__(self) -> int:
        return len(self._workflows)

    def require(self, entity_type: str) -> Workflow:
        """Alias of registry[entity_type] that reads better at call sites."""
        return self[entity_type]

    def __repr__(self) -> str:
        return f"<WorkflowRegistry {sorted(self._workflows)}>"


def build_default_registry() -> WorkflowRegistry:
    """Registry holding every built-in workflow table."""
    from .workflow_tables import DEFAULT_WORKFLOWS

    return WorkflowRegistry(DEFAULT_WORKFLOWS)
