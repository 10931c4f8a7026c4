"""
Command types for FlowController control flow.

Each user action in the wizard maps to exactly one command. The web app and
console harness build commands; FlowController.handle() executes them.
"""

from dataclasses import dataclass
from typing import Any, Union

from cgm_flow.contracts import StepId


@dataclass(frozen=True)
class StartFlow:
    """
    Show the current step of the session (restored or fresh).

    Returns: StepResult for the current step.
    """
    pass


@dataclass(frozen=True)
class AnswerQuestion:
    """
    Record an answer without moving.

    field accepts the attribute name ('current_device') or the serialized
    key ('currentDevice').
    """
    field: str
    value: Any


@dataclass(frozen=True)
class GoNext:
    """Validate the current step and advance (FlowCompleted from summary)"""
    pass


@dataclass(frozen=True)
class GoBack:
    """Return to the previous step in history (no-op on the first step)"""
    pass


@dataclass(frozen=True)
class ReturnToSummary:
    """
    Leave edit mode and jump back to the summary.

    Only valid while editing. Rejected with a validation message when the
    answers would make the summary ineligible.
    """
    pass


@dataclass(frozen=True)
class EditStep:
    """
    Jump from the summary to a step to revise its answer.

    Only valid on the summary step.
    """
    target: StepId


@dataclass(frozen=True)
class StartOver:
    """Reset answers and history, clear persisted state"""
    pass


# Command union type for type hints
Command = Union[StartFlow, AnswerQuestion, GoNext, GoBack, ReturnToSummary, EditStep, StartOver]
