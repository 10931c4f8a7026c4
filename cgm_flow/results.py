"""
Result types returned by FlowController.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cgm_flow.contracts import Answers, StepId


@dataclass(frozen=True)
class SummaryRow:
    """
    One line of the summary review.

    Attributes:
        step: Step that collects this answer (target of the edit action)
        label: Human-readable field label
        value: Display value (device name, range label, Yes/No)
    """
    step: StepId
    label: str
    value: str

    def to_json(self) -> Dict[str, str]:
        return {'step': self.step.value, 'label': self.label, 'value': self.value}


@dataclass(frozen=True)
class StepView:
    """
    Everything a UI needs to render the current step.

    Attributes:
        step: Current step
        title: Step heading
        question: Question text
        image_src / image_alt: Illustration (empty if none configured)
        step_number: 1-based position in the path taken (len(history))
        can_go_back: Whether a Back control should be offered
        can_proceed: Whether the current question is answered
        editing: Whether the user is editing from the summary
        is_last_step: True on the summary step
        validation_error: Message from the last rejected action, if any
        answers: Current answers
        summary: Summary rows (only populated on the summary step)
    """
    step: StepId
    title: str
    question: str
    image_src: str
    image_alt: str
    step_number: int
    can_go_back: bool
    can_proceed: bool
    editing: bool
    is_last_step: bool
    validation_error: Optional[str]
    answers: Answers
    summary: List[SummaryRow] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            'step': self.step.value,
            'title': self.title,
            'question': self.question,
            'image': {'src': self.image_src, 'alt': self.image_alt},
            'stepNumber': self.step_number,
            'canGoBack': self.can_go_back,
            'canProceed': self.can_proceed,
            'editing': self.editing,
            'isLastStep': self.is_last_step,
            'validationError': self.validation_error,
            'answers': self.answers.to_json(),
            'summary': [row.to_json() for row in self.summary],
        }


@dataclass(frozen=True)
class StepResult:
    """
    Command processed; session is on `view.step`.

    Returned by: StartFlow, AnswerQuestion, GoNext, GoBack,
    ReturnToSummary, EditStep, StartOver

    Attributes:
        view: Render model for the current step
        moved: Whether the current step changed
    """
    view: StepView
    moved: bool


@dataclass(frozen=True)
class FlowCompleted:
    """
    GoNext on the summary: the questionnaire is finished.

    Attributes:
        answers: Final answers (the completion payload)
        view: Render model (still the summary step)
    """
    answers: Answers
    view: StepView


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by the controller (invalid lifecycle transition).

    Examples:
    - EditStep when not on the summary
    - ReturnToSummary when not editing
    - EditStep targeting summary or an unknown step

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str
