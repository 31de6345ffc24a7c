# Overview: Service-layer transition rules; validates status changes and derives offerable actions.

"""
Transition Service

================================================================================
PURPOSE: Decide whether a requested status change is legal for a workflow
================================================================================

RULES (NON-NEGOTIABLE):
1. Same-state requests are always valid (idempotent re-submission is never an error)
2. Otherwise the requested state must be a declared successor of the current state
3. Unknown current states are rejected like any other illegal transition
4. Terminal states reject everything except the same-state no-op

Everything here is pure: no I/O, no session access. The same functions back the
HTTP handlers, the CLI `workflows check` command and the test suite.

next_actions() is a projection of the same table, so the actions a caller
offers can never disagree with what validate_transition() accepts.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .workflow_registry import Workflow


# Targets that UIs should confirm before submitting
DESTRUCTIVE_STATES = frozenset({"cancelled", "no_show", "withdrawn", "archived"})


class TransitionError(ValueError):
    """
    Raised when an invalid status transition is attempted.

    This is a domain error, not a technical error. str(error) is the
    validator message verbatim.
    """

    def __init__(self, message: str, *, current: str, requested: str):
        super().__init__(message)
        self.current = current
        self.requested = requested


@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"valid": self.valid}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class StatusAction:
    state: str
    label: str
    terminal: bool
    requires_confirmation: bool

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "label": self.label,
            "terminal": self.terminal,
            "requires_confirmation": self.requires_confirmation,
        }


def transition_error_message(current: str, requested: str) -> str:
    return f"Cannot transition from '{current}' to '{requested}'"


def validate_transition(workflow: Workflow, current: str, requested: str) -> TransitionResult:
    """
    Check a requested status change against a workflow table.

    Args:
        workflow: table for the entity type
        current: persisted status
        requested: status the caller asks for

    Returns:
        TransitionResult(valid=True) or TransitionResult(valid=False, error=...)
        where error names both states.
    """
    if current == requested:
        return TransitionResult(valid=True)

    if not workflow.allows(current, requested):
        return TransitionResult(valid=False, error=transition_error_message(current, requested))

    return TransitionResult(valid=True)


def require_transition(workflow: Workflow, current: str, requested: str) -> None:
    """
    validate_transition() for callers that prefer exceptions.

    Raises:
        TransitionError: If the change is not allowed
    """
    result = validate_transition(workflow, current, requested)
    if not result.valid:
        raise TransitionError(result.error, current=current, requested=requested)


def default_label(state: str) -> str:
    """Humanize a state name: pending_hearing -> Pending hearing."""
    return state.replace("_", " ").capitalize()


def next_actions(
    workflow: Workflow,
    current: str,
    labels: Mapping[str, str] | None = None,
) -> list[StatusAction]:
    """
    States a caller may offer from `current`, in declaration order.

    Empty for terminal and unknown states. `labels` maps state -> display text;
    missing entries fall back to default_label().
    """
    labels = labels or {}
    return [
        StatusAction(
            state=target,
            label=labels.get(target) or default_label(target),
            terminal=workflow.is_terminal(target),
            requires_confirmation=target in DESTRUCTIVE_STATES,
        )
        for target in workflow.successors(current)
    ]
