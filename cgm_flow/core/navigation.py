"""
Flow Engine - Stateless step navigation for the CGM replacement questionnaire

Responsibilities:
- Compute the next step from the current step and answers
- Compute the previous step from the recorded step history
- Decide whether the current step may be left (answered / consistent)
- Provide per-step display text

Design principles:
- Stateless: All state comes from the arguments
- Deterministic: Same input always produces same output
- Fail soft: Unknown steps are dead ends, never exceptions
- Total functions: every lookup has an explicit default

Eligibility branch:
    A patient whose current device is not in the catalog ('other') and whose
    last device update was less than 5 years ago cannot be verified as due
    for replacement, so the flow stops at 'ineligible-selection'. A 5+ year
    update re-admits them to the normal path, including the device switch
    question which is skipped for everyone not yet due for an upgrade.
"""

import logging
from typing import Any, Optional, Sequence

from cgm_flow.catalog import FIVE_PLUS_YEARS_ID, OTHER_DEVICE_ID, get_catalog
from cgm_flow.contracts import ANSWER_KEYS, StepId, StepImage

logger = logging.getLogger(__name__)


# Step -> Answers attribute the step collects
STEP_FIELDS = {
    StepId.CURRENTLY_USING_CGM: 'currently_using_cgm',
    StepId.CURRENT_DEVICE: 'current_device',
    StepId.LAST_DEVICE_UPDATE: 'last_device_update',
    StepId.LAST_SENSORS_ORDERED: 'last_sensors_ordered',
    StepId.DEVICE_SWITCH_INTENTION: 'device_switch_intention',
    StepId.DEVICE_SELECTION: 'device_selection',
    StepId.LAST_DOCTOR_VISIT: 'last_doctor_visit',
}

# Steps that collect no input
INFORMATIONAL_STEPS = {StepId.INELIGIBLE_SELECTION, StepId.SUMMARY}

STEP_TITLES = {
    StepId.CURRENTLY_USING_CGM: 'Currently Using CGM',
    StepId.CURRENT_DEVICE: 'Current Device',
    StepId.LAST_DEVICE_UPDATE: 'Last Device Update',
    StepId.LAST_SENSORS_ORDERED: 'Last Sensors Ordered',
    StepId.DEVICE_SWITCH_INTENTION: 'Device Switch Intention',
    StepId.DEVICE_SELECTION: 'Device Selection',
    StepId.LAST_DOCTOR_VISIT: 'Last Doctor Visit',
    StepId.INELIGIBLE_SELECTION: 'Ineligible for Equipment',
    StepId.SUMMARY: 'Summary',
}

STEP_QUESTIONS = {
    StepId.CURRENTLY_USING_CGM: 'Are you currently using a CGM device?',
    StepId.CURRENT_DEVICE: 'Which CGM device are you currently using?',
    StepId.LAST_DEVICE_UPDATE: 'When was your last device update?',
    StepId.LAST_SENSORS_ORDERED: 'When did you last order sensors?',
    StepId.DEVICE_SWITCH_INTENTION: 'Are you interested in switching to a different CGM device?',
    StepId.DEVICE_SELECTION: 'Which CGM device would you like to select?',
    StepId.LAST_DOCTOR_VISIT: 'Have you seen your primary care physician in the last 6 months?',
    StepId.INELIGIBLE_SELECTION: 'Unable to Provide Equipment at This Time',
    StepId.SUMMARY: 'Review Your Selections',
}

MISSING_ANSWER_MESSAGES = {
    StepId.CURRENTLY_USING_CGM: 'Please select whether you are currently using a CGM device.',
    StepId.CURRENT_DEVICE: 'Please select your current CGM device.',
    StepId.LAST_DEVICE_UPDATE: 'Please select when your last device update was.',
    StepId.LAST_SENSORS_ORDERED: 'Please select when you last ordered sensors.',
    StepId.DEVICE_SWITCH_INTENTION: 'Please indicate whether you are interested in switching devices.',
    StepId.DEVICE_SELECTION: 'Please select a CGM device.',
    StepId.LAST_DOCTOR_VISIT: (
        'Please indicate whether you have seen your primary care physician in the last 6 months.'
    ),
}

DEVICE_CONFLICT_MESSAGE = (
    'You cannot select {device} as your current device because it is already '
    'selected as your new device.'
)

# Shown when leaving edit mode would keep an ineligible answer set
RETURN_BLOCKED_MESSAGES = {
    StepId.LAST_DEVICE_UPDATE: (
        'You must select "5+ Years" for your last device update to return to '
        'the summary, or click "Next" to continue.'
    ),
    StepId.CURRENT_DEVICE: (
        'You must select a listed device as your current device to return to '
        'the summary, or click "Next" to continue.'
    ),
}
RETURN_BLOCKED_DEFAULT = (
    'Your answers do not meet the eligibility requirements. Please update your '
    'current device or last device update before returning to the summary.'
)


# =========================================================================
# Input coercion (never raises)
# =========================================================================

def coerce_step(step: Any) -> Optional[StepId]:
    """
    Convert a StepId or step string to StepId.

    Returns:
        StepId, or None for anything outside the closed set
    """
    if isinstance(step, StepId):
        return step
    try:
        return StepId(step)
    except (ValueError, TypeError):
        return None


def _answer(answers: Any, field_name: str) -> Any:
    """
    Read one answer from an Answers record or a plain dict.

    Dicts may use either the attribute name or the camelCase key. Anything
    else (including None) reads as unanswered.
    """
    if answers is None:
        return None
    if isinstance(answers, dict):
        if field_name in answers:
            return answers[field_name]
        return answers.get(ANSWER_KEYS[field_name])
    return getattr(answers, field_name, None)


def is_ineligible(answers: Any) -> bool:
    """
    True when the answers route to 'ineligible-selection'.

    Unanswered last_device_update counts as "not 5+ years", mirroring the
    transition out of 'last-device-update'.
    """
    return (
        _answer(answers, 'current_device') == OTHER_DEVICE_ID
        and _answer(answers, 'last_device_update') != FIVE_PLUS_YEARS_ID
    )


# =========================================================================
# Public API
# =========================================================================

def get_next_step(step: Any, answers: Any) -> Optional[StepId]:
    """
    Get the step that follows `step` for the given answers.

    Args:
        step: Current StepId (or its string value)
        answers: Answers record (or dict of answers)

    Returns:
        Next StepId, or None for terminal and unknown steps
    """
    current = coerce_step(step)

    if current is StepId.CURRENTLY_USING_CGM:
        if _answer(answers, 'currently_using_cgm') is True:
            return StepId.CURRENT_DEVICE
        return StepId.DEVICE_SELECTION

    if current is StepId.CURRENT_DEVICE:
        return StepId.LAST_DEVICE_UPDATE

    if current is StepId.LAST_DEVICE_UPDATE:
        if is_ineligible(answers):
            return StepId.INELIGIBLE_SELECTION
        return StepId.LAST_SENSORS_ORDERED

    if current is StepId.LAST_SENSORS_ORDERED:
        # Upsell question only for patients due for a device upgrade
        if _answer(answers, 'last_device_update') == FIVE_PLUS_YEARS_ID:
            return StepId.DEVICE_SWITCH_INTENTION
        return StepId.LAST_DOCTOR_VISIT

    if current is StepId.DEVICE_SWITCH_INTENTION:
        if _answer(answers, 'device_switch_intention') is True:
            return StepId.DEVICE_SELECTION
        return StepId.LAST_DOCTOR_VISIT

    if current is StepId.DEVICE_SELECTION:
        return StepId.LAST_DOCTOR_VISIT

    if current is StepId.LAST_DOCTOR_VISIT:
        return StepId.SUMMARY

    # ineligible-selection, summary, unknown
    return None


def get_previous_step(step: Any, history: Optional[Sequence[Any]]) -> Optional[StepId]:
    """
    Get the step the user came from.

    History-based: the caller has already appended the current step, so the
    previous step is the second-to-last entry. `step` is not consulted.

    Returns:
        Previous StepId, or None when there is nowhere to go back to
    """
    try:
        if history is None or len(history) <= 1:
            return None
        return coerce_step(history[-2])
    except TypeError:
        return None


def can_proceed(step: Any, answers: Any) -> bool:
    """
    Whether the step's question has been answered.

    Summary and ineligible-selection need no input and always return True.
    Unknown steps return False.
    """
    current = coerce_step(step)

    if current in INFORMATIONAL_STEPS:
        return True

    field_name = STEP_FIELDS.get(current)
    if field_name is None:
        return False

    return _answer(answers, field_name) is not None


def get_validation_error(step: Any, answers: Any) -> Optional[str]:
    """
    Human-readable reason the user cannot leave `step`.

    Besides missing answers, enforces one cross-field rule: the current
    device cannot equal the device already chosen as the new device.

    Returns:
        Error message, or None if the step is valid
    """
    current = coerce_step(step)
    field_name = STEP_FIELDS.get(current)

    if field_name is None:
        return None

    if _answer(answers, field_name) is None:
        return MISSING_ANSWER_MESSAGES[current]

    if current is StepId.CURRENT_DEVICE:
        current_device = _answer(answers, 'current_device')
        if current_device == _answer(answers, 'device_selection'):
            device = get_catalog().get_device(current_device)
            name = device.name if device else current_device
            return DEVICE_CONFLICT_MESSAGE.format(device=name)

    return None


def get_return_to_summary_error(step: Any, answers: Any) -> Optional[str]:
    """
    Stricter gate used when leaving edit mode.

    A step can be answered and still unsafe for the summary: e.g. an 'other'
    current device with a '0-1-year' update is a valid answer that leads to
    'ineligible-selection'. Next is still allowed in that case; returning to
    the summary is not.

    Returns:
        Error message, or None if the summary may be shown
    """
    error = get_validation_error(step, answers)
    if error is not None:
        return error

    if _answer(answers, 'currently_using_cgm') is True and is_ineligible(answers):
        return RETURN_BLOCKED_MESSAGES.get(coerce_step(step), RETURN_BLOCKED_DEFAULT)

    return None


def get_step_title(step: Any) -> str:
    return STEP_TITLES.get(coerce_step(step), '')


def get_step_question(step: Any) -> str:
    return STEP_QUESTIONS.get(coerce_step(step), '')


def get_step_image(step: Any) -> Optional[StepImage]:
    current = coerce_step(step)
    if current is None:
        return None
    return get_catalog().step_images.get(current)
