"""
Semantic contracts for the CGM replacement flow.

This module defines the immutable data structures shared by the flow
engine, the controller, persistence and the web layer.

Design principles:
- Frozen dataclasses (immutable after creation)
- String-based enums for JSON serialization
- No dependencies on other modules
- "Unanswered" is always None, never a missing key

Contents:
- StepId: Closed set of wizard steps
- Answers: The seven questionnaire answers (tri-state per field)
- Device / TimeRange / StepImage: Static catalog entries

Usage:
    from cgm_flow.contracts import StepId, Answers
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Optional


class StepId(str, Enum):
    """
    One screen of the wizard.

    The set is closed: there are no dynamically created steps. Values are
    the kebab-case tokens used in URLs and persisted snapshots.
    """
    CURRENTLY_USING_CGM = "currently-using-cgm"
    CURRENT_DEVICE = "current-device"
    LAST_DEVICE_UPDATE = "last-device-update"
    LAST_SENSORS_ORDERED = "last-sensors-ordered"
    DEVICE_SWITCH_INTENTION = "device-switch-intention"
    DEVICE_SELECTION = "device-selection"
    LAST_DOCTOR_VISIT = "last-doctor-visit"
    INELIGIBLE_SELECTION = "ineligible-selection"
    SUMMARY = "summary"


FIRST_STEP = StepId.CURRENTLY_USING_CGM

# Single source of truth for valid step strings
VALID_STEPS = {step.value for step in StepId}

# Python attribute -> serialized key (snapshot/API format)
ANSWER_KEYS = {
    'currently_using_cgm': 'currentlyUsingCGM',
    'current_device': 'currentDevice',
    'last_device_update': 'lastDeviceUpdate',
    'last_sensors_ordered': 'lastSensorsOrdered',
    'device_switch_intention': 'deviceSwitchIntention',
    'device_selection': 'deviceSelection',
    'last_doctor_visit': 'lastDoctorVisit',
}

BOOLEAN_FIELDS = {'currently_using_cgm', 'device_switch_intention', 'last_doctor_visit'}

_KEY_TO_FIELD = {key: name for name, key in ANSWER_KEYS.items()}


def resolve_answer_field(name: str) -> str:
    """
    Map a field name in either naming style to the Answers attribute.

    Raises:
        ValueError: If the name is not one of the seven answer fields
    """
    if name in ANSWER_KEYS:
        return name
    if name in _KEY_TO_FIELD:
        return _KEY_TO_FIELD[name]
    raise ValueError(f"Unknown answer field: {name!r}")


@dataclass(frozen=True)
class Answers:
    """
    Accumulated questionnaire answers.

    Every field always exists; None means "unanswered". Boolean fields hold
    True/False once answered, selection fields hold a catalog id.

    Answers are immutable: use with_answer() to derive an updated record.

    Examples:
        >>> answers = Answers().with_answer('currentlyUsingCGM', True)
        >>> answers.currently_using_cgm
        True
        >>> answers.current_device is None
        True
    """
    currently_using_cgm: Optional[bool] = None
    current_device: Optional[str] = None
    last_device_update: Optional[str] = None
    last_sensors_ordered: Optional[str] = None
    device_switch_intention: Optional[bool] = None
    device_selection: Optional[str] = None
    last_doctor_visit: Optional[bool] = None

    def with_answer(self, field_name: str, value: Any) -> "Answers":
        """
        Return a copy with one answer replaced.

        Args:
            field_name: snake_case attribute or camelCase key
            value: bool for yes/no questions, str id for selections, or None

        Raises:
            ValueError: If field is unknown or value has the wrong type
        """
        name = resolve_answer_field(field_name)

        if value is not None:
            if name in BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    raise ValueError(f"{ANSWER_KEYS[name]} expects a boolean, got {value!r}")
            elif not isinstance(value, str) or not value:
                raise ValueError(f"{ANSWER_KEYS[name]} expects an option id, got {value!r}")

        return replace(self, **{name: value})

    def is_answered(self, field_name: str) -> bool:
        return getattr(self, resolve_answer_field(field_name)) is not None

    def to_json(self) -> Dict[str, Any]:
        """Serialize with camelCase keys (all seven keys always present)."""
        return {ANSWER_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "Answers":
        """
        Deserialize from a camelCase (or snake_case) dict.

        Missing keys become None. Unknown keys are ignored.

        Raises:
            ValueError: If data is not a dict or a value has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"answers must be an object, got {type(data).__name__}")

        answers = Answers()
        for key, value in data.items():
            try:
                name = resolve_answer_field(key)
            except ValueError:
                continue
            answers = answers.with_answer(name, value)
        return answers


@dataclass(frozen=True)
class Device:
    """CGM device catalog entry (static reference data)."""
    id: str
    name: str
    description: str
    image: str

    def to_json(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'image': self.image,
        }


@dataclass(frozen=True)
class TimeRange:
    """Selectable time range option (e.g. '0-1-year')."""
    id: str
    label: str


@dataclass(frozen=True)
class StepImage:
    """Illustration shown beside a step."""
    src: str
    alt: str
