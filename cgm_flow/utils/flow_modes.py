"""
Flow mode enum for the edit-from-summary sub-state.

Invariants:
- Exactly one mode is active per session
- EDITING is entered only from the summary step (EditStep)
- EDITING is left by a successful ReturnToSummary, by reaching the summary
  via Next, or by a restart
- EDITING is never active on the summary step
- Back never changes the mode

Design:
- FlowMode is a string-based enum for JSON serialization
- Snapshots store the mode as the boolean 'returnToSummary'
- FlowController owns all mode transitions
"""

from enum import Enum


class FlowMode(str, Enum):
    """
    Session-level mode layered on top of the step state machine.

    NORMAL:
        Regular forward/back navigation through the questionnaire.

        Entry: Session start, restart, successful return to summary,
               reaching the summary via Next
        Exit: EditStep from the summary step -> EDITING

    EDITING:
        The user jumped from the summary into a step to revise an answer.
        A "Return to Summary" action is offered and gated by the stricter
        return-to-summary validation.

        Entry: EditStep (only valid on summary)
        Exit: ReturnToSummary succeeds -> NORMAL
              Next reaches summary -> NORMAL
              StartOver / logo click -> NORMAL
    """
    NORMAL = "normal"
    EDITING = "editing"

    @classmethod
    def from_return_flag(cls, return_to_summary: bool) -> "FlowMode":
        return cls.EDITING if return_to_summary else cls.NORMAL

    @property
    def return_to_summary(self) -> bool:
        return self is FlowMode.EDITING


# Single source of truth for valid mode strings
VALID_MODES = {mode.value for mode in FlowMode}
