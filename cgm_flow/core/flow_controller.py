"""
Flow Controller - Session orchestration for the CGM replacement questionnaire

Responsibilities:
- Own one session: current step, answers, step history, flow mode
- Drive the flow engine in response to user actions
- Apply edit-from-summary semantics (FlowMode.EDITING)
- Persist after every mutation and restore on start

Design principles:
- Thin orchestration layer (navigation rules live in core.navigation)
- Only component allowed to write to the key-value store
- Navigation never raises; lifecycle misuse returns IllegalCommand
- Corrupt persisted state falls back to a fresh session

Snapshot format (JSON):
{
    'currentStep': 'last-device-update',
    'answers': {'currentlyUsingCGM': true, ...},   # all seven keys
    'stepHistory': ['currently-using-cgm', ...],
    'returnToSummary': false
}
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from cgm_flow.commands import (
    AnswerQuestion,
    Command,
    EditStep,
    GoBack,
    GoNext,
    ReturnToSummary,
    StartFlow,
    StartOver,
)
from cgm_flow.config import STORAGE_KEY
from cgm_flow.contracts import FIRST_STEP, Answers, StepId
from cgm_flow.core import navigation
from cgm_flow.persistence import KeyValueStore
from cgm_flow.results import FlowCompleted, IllegalCommand, StepResult, StepView
from cgm_flow.utils.display_helpers import build_summary_rows
from cgm_flow.utils.flow_modes import FlowMode

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Answers], None]


class FlowController:
    """
    Owns one active questionnaire session.

    Session invariants:
    - step_history is never empty
    - step_history[-1] == current_step
    - mode is EDITING only between EditStep and the next arrival on summary
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        storage_key: str = STORAGE_KEY,
        on_complete: Optional[CompletionCallback] = None,
    ):
        """
        Create a fresh session.

        Use FlowController.restore() to resume a persisted session instead.

        Args:
            store: Key-value persistence collaborator (None = in-memory only)
            storage_key: Key under which the snapshot is stored
            on_complete: Called with the final Answers when the flow completes
        """
        self.store = store
        self.storage_key = storage_key
        self.on_complete = on_complete

        self.current_step: StepId = FIRST_STEP
        self.answers = Answers()
        self.step_history: List[StepId] = [FIRST_STEP]
        self.mode = FlowMode.NORMAL
        self.validation_error: Optional[str] = None

    # ========================
    # Construction / persistence
    # ========================

    @classmethod
    def restore(
        cls,
        store: KeyValueStore,
        storage_key: str = STORAGE_KEY,
        on_complete: Optional[CompletionCallback] = None,
    ) -> "FlowController":
        """
        Resume the session persisted under storage_key.

        Missing, unreadable or malformed snapshots never propagate: the
        problem is logged and a fresh session is returned.
        """
        controller = cls(store=store, storage_key=storage_key, on_complete=on_complete)

        try:
            raw = store.get(storage_key)
        except Exception as e:
            logger.warning(f"Failed to read saved state for {storage_key}: {e}")
            return controller

        if raw is None:
            logger.info(f"No saved state for {storage_key}, starting fresh session")
            return controller

        try:
            controller._load_snapshot(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring corrupt saved state for {storage_key}: {e}")
            return cls(store=store, storage_key=storage_key, on_complete=on_complete)

        logger.info(
            f"Restored session {storage_key}: step={controller.current_step.value}, "
            f"history={len(controller.step_history)}, mode={controller.mode.value}"
        )
        return controller

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any], **kwargs) -> "FlowController":
        """
        Build a controller from a snapshot dict.

        Raises:
            ValueError: If snapshot is malformed
        """
        controller = cls(**kwargs)
        controller._load_snapshot(snapshot)
        return controller

    def _load_snapshot(self, snapshot: Dict[str, Any]) -> None:
        if not isinstance(snapshot, dict):
            raise ValueError(f"snapshot must be an object, got {type(snapshot).__name__}")

        current_step = navigation.coerce_step(snapshot.get('currentStep'))
        if current_step is None:
            raise ValueError(f"Unknown currentStep: {snapshot.get('currentStep')!r}")

        raw_history = snapshot.get('stepHistory')
        if not isinstance(raw_history, list) or not raw_history:
            raise ValueError("stepHistory must be a non-empty list")

        history = [navigation.coerce_step(step) for step in raw_history]
        if any(step is None for step in history):
            raise ValueError(f"stepHistory contains unknown steps: {raw_history!r}")
        if history[-1] is not current_step:
            raise ValueError("stepHistory does not end with currentStep")

        answers = Answers.from_json(snapshot.get('answers', {}))
        mode = FlowMode.from_return_flag(bool(snapshot.get('returnToSummary', False)))

        self.current_step = current_step
        self.answers = answers
        self.step_history = history
        self.mode = mode
        self.validation_error = None

    def snapshot(self) -> Dict[str, Any]:
        """
        Serialize session state (validation errors are transient, not saved).

        Returns:
            dict: JSON-safe snapshot
        """
        return {
            'currentStep': self.current_step.value,
            'answers': self.answers.to_json(),
            'stepHistory': [step.value for step in self.step_history],
            'returnToSummary': self.mode.return_to_summary,
        }

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set(self.storage_key, json.dumps(self.snapshot()))
        except Exception as e:
            logger.error(f"Failed to save state for {self.storage_key}: {e}")

    def _clear_persisted(self) -> None:
        if self.store is None:
            return
        try:
            self.store.delete(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to clear saved state for {self.storage_key}: {e}")

    # ========================
    # Queries
    # ========================

    @property
    def editing(self) -> bool:
        return self.mode is FlowMode.EDITING

    @property
    def can_go_back(self) -> bool:
        return navigation.get_previous_step(self.current_step, self.step_history) is not None

    def view(self) -> StepView:
        """Render model for the current step"""
        image = navigation.get_step_image(self.current_step)
        on_summary = self.current_step is StepId.SUMMARY

        return StepView(
            step=self.current_step,
            title=navigation.get_step_title(self.current_step),
            question=navigation.get_step_question(self.current_step),
            image_src=image.src if image else '',
            image_alt=image.alt if image else '',
            step_number=len(self.step_history),
            can_go_back=self.can_go_back,
            can_proceed=navigation.can_proceed(self.current_step, self.answers),
            editing=self.editing,
            is_last_step=on_summary,
            validation_error=self.validation_error,
            answers=self.answers,
            summary=build_summary_rows(self.answers) if on_summary else [],
        )

    # ========================
    # Actions
    # ========================

    def answer(self, field_name: str, value: Any) -> StepResult:
        """
        Record an answer for the current session.

        Does not move. Clears any validation error shown for the step.

        Raises:
            ValueError: If field_name is unknown or value has the wrong type
        """
        self.answers = self.answers.with_answer(field_name, value)
        self.validation_error = None
        logger.debug(f"{self.storage_key}: {field_name} = {value!r}")
        self._persist()
        return StepResult(view=self.view(), moved=False)

    def next(self):
        """
        Advance to the next step.

        Returns:
            StepResult (moved=False with validation_error set when blocked),
            or FlowCompleted when there is no next step from the summary
        """
        error = navigation.get_validation_error(self.current_step, self.answers)
        if error is not None:
            self.validation_error = error
            return StepResult(view=self.view(), moved=False)

        next_step = navigation.get_next_step(self.current_step, self.answers)

        if next_step is None:
            if self.current_step is StepId.SUMMARY:
                return self._complete()
            # ineligible-selection or unknown: dead end, nothing to do
            return StepResult(view=self.view(), moved=False)

        # Next navigates even in edit mode (this is how ineligible-selection
        # is reached mid-edit)
        self._move_to(next_step)
        return StepResult(view=self.view(), moved=True)

    def back(self) -> StepResult:
        """
        Go back along the recorded path. Mode is preserved.

        From an edit target, Back skips the summary entry and continues
        along the pre-summary path (the target's original predecessor).
        """
        previous = navigation.get_previous_step(self.current_step, self.step_history)
        if previous is None:
            return StepResult(view=self.view(), moved=False)

        if self.editing and previous is StepId.SUMMARY:
            rewound = self._pre_summary_history()
            if rewound is not None:
                self.step_history = rewound
                self.current_step = rewound[-1]
                self.validation_error = None
                self._persist()
                return StepResult(view=self.view(), moved=True)

        self.step_history.pop()
        self.current_step = previous
        self.validation_error = None
        self._persist()
        return StepResult(view=self.view(), moved=True)

    def _pre_summary_history(self) -> Optional[List[StepId]]:
        """
        History truncated to the current step's predecessor on the path
        recorded before the summary.

        Returns:
            New history ending at the predecessor, or None if the current
            step was not visited (or was the first step) before the summary
        """
        summary_index = len(self.step_history) - 2
        for index in range(summary_index - 1, 0, -1):
            if self.step_history[index] is self.current_step:
                return self.step_history[:index]
        return None

    def return_to_summary(self):
        """
        Leave edit mode and show the summary.

        Stricter than next(): answers that would route to
        ineligible-selection are rejected here.

        Returns:
            StepResult, or IllegalCommand when not editing
        """
        if not self.editing:
            return IllegalCommand(
                reason="Return to summary is only available while editing from the summary",
                command_type=ReturnToSummary.__name__,
            )

        error = navigation.get_return_to_summary_error(self.current_step, self.answers)
        if error is not None:
            self.validation_error = error
            logger.info(f"{self.storage_key}: return to summary blocked on {self.current_step.value}")
            return StepResult(view=self.view(), moved=False)

        self.mode = FlowMode.NORMAL
        self._move_to(StepId.SUMMARY)
        return StepResult(view=self.view(), moved=True)

    def edit_step(self, target: Any):
        """
        Jump from the summary to `target` in edit mode.

        History is appended, not truncated: Back from the edit target still
        walks the pre-summary path.

        Returns:
            StepResult, or IllegalCommand when not on the summary or the
            target is not an editable step
        """
        if self.current_step is not StepId.SUMMARY:
            return IllegalCommand(
                reason="Steps can only be edited from the summary",
                command_type=EditStep.__name__,
            )

        target_step = navigation.coerce_step(target)
        if target_step is None or target_step not in navigation.STEP_FIELDS:
            return IllegalCommand(
                reason=f"Step is not editable: {target!r}",
                command_type=EditStep.__name__,
            )

        self.mode = FlowMode.EDITING
        self._move_to(target_step)
        logger.info(f"{self.storage_key}: editing {target_step.value} from summary")
        return StepResult(view=self.view(), moved=True)

    def start_over(self) -> StepResult:
        """Reset to a fresh session and clear persisted state"""
        self.current_step = FIRST_STEP
        self.answers = Answers()
        self.step_history = [FIRST_STEP]
        self.mode = FlowMode.NORMAL
        self.validation_error = None
        self._clear_persisted()
        logger.info(f"{self.storage_key}: session reset")
        return StepResult(view=self.view(), moved=True)

    # Logo click behaves exactly like "Start Over"
    logo_click = start_over

    def _move_to(self, step: StepId) -> None:
        # Arriving on the summary always ends an edit
        if step is StepId.SUMMARY:
            self.mode = FlowMode.NORMAL
        self.step_history.append(step)
        self.current_step = step
        self.validation_error = None
        self._persist()

    def _complete(self) -> FlowCompleted:
        logger.info(f"{self.storage_key}: flow completed with answers {self.answers.to_json()}")
        if self.on_complete is not None:
            self.on_complete(self.answers)
        return FlowCompleted(answers=self.answers, view=self.view())

    # ========================
    # Command dispatch
    # ========================

    def handle(self, command: Command):
        """
        Execute one command.

        Returns:
            StepResult | FlowCompleted | IllegalCommand
        """
        if isinstance(command, StartFlow):
            return StepResult(view=self.view(), moved=False)
        if isinstance(command, AnswerQuestion):
            return self.answer(command.field, command.value)
        if isinstance(command, GoNext):
            return self.next()
        if isinstance(command, GoBack):
            return self.back()
        if isinstance(command, ReturnToSummary):
            return self.return_to_summary()
        if isinstance(command, EditStep):
            return self.edit_step(command.target)
        if isinstance(command, StartOver):
            return self.start_over()

        return IllegalCommand(
            reason=f"Unknown command: {command!r}",
            command_type=type(command).__name__,
        )
