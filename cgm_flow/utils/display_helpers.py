"""
Display Helpers - Convert answers to human-readable format

Used by the flow controller to build the summary review and by the console
harness to print it.
"""

from typing import List, Optional

from cgm_flow.catalog import DEVICE_UPDATE_RANGES, SENSORS_ORDERED_RANGES, get_catalog
from cgm_flow.contracts import Answers, StepId
from cgm_flow.results import SummaryRow

NOT_SPECIFIED = 'Not specified'

# Field name mappings: answers attribute -> Human Readable Label
FIELD_LABELS = {
    'currently_using_cgm': 'Currently Using CGM',
    'current_device': 'Current Device',
    'last_device_update': 'Last Device Update',
    'last_sensors_ordered': 'Last Sensors Ordered',
    'device_switch_intention': 'Interested in Switching',
    'device_selection': 'Selected Device',
    'last_doctor_visit': 'Seen Doctor in Last 6 Months',
}


def get_device_name(device_id: Optional[str]) -> str:
    """
    Catalog name for a device id.

    Unknown ids are shown as-is so stale snapshots still render.
    """
    if not device_id:
        return NOT_SPECIFIED
    device = get_catalog().get_device(device_id)
    return device.name if device else device_id


def get_time_range_label(range_id: Optional[str], kind: str) -> str:
    """
    Label for a time-range id.

    Args:
        range_id: e.g. '5-plus-years'
        kind: DEVICE_UPDATE_RANGES or SENSORS_ORDERED_RANGES
    """
    if not range_id:
        return NOT_SPECIFIED
    time_range = get_catalog().get_time_range(kind, range_id)
    return time_range.label if time_range else range_id


def format_boolean(value: Optional[bool]) -> str:
    if value is None:
        return NOT_SPECIFIED
    return 'Yes' if value else 'No'


def build_summary_rows(answers: Answers) -> List[SummaryRow]:
    """
    Build the ordered summary review.

    "Currently Using CGM" is always shown; every other row appears only
    once its question has been answered.

    Args:
        answers: Current answers

    Returns:
        list of SummaryRow, each pointing at the step that edits it
    """
    rows = [
        SummaryRow(
            step=StepId.CURRENTLY_USING_CGM,
            label=FIELD_LABELS['currently_using_cgm'],
            value=format_boolean(answers.currently_using_cgm),
        )
    ]

    if answers.current_device:
        rows.append(SummaryRow(
            step=StepId.CURRENT_DEVICE,
            label=FIELD_LABELS['current_device'],
            value=get_device_name(answers.current_device),
        ))

    if answers.last_device_update:
        rows.append(SummaryRow(
            step=StepId.LAST_DEVICE_UPDATE,
            label=FIELD_LABELS['last_device_update'],
            value=get_time_range_label(answers.last_device_update, DEVICE_UPDATE_RANGES),
        ))

    if answers.last_sensors_ordered:
        rows.append(SummaryRow(
            step=StepId.LAST_SENSORS_ORDERED,
            label=FIELD_LABELS['last_sensors_ordered'],
            value=get_time_range_label(answers.last_sensors_ordered, SENSORS_ORDERED_RANGES),
        ))

    if answers.device_switch_intention is not None:
        rows.append(SummaryRow(
            step=StepId.DEVICE_SWITCH_INTENTION,
            label=FIELD_LABELS['device_switch_intention'],
            value=format_boolean(answers.device_switch_intention),
        ))

    if answers.device_selection:
        rows.append(SummaryRow(
            step=StepId.DEVICE_SELECTION,
            label=FIELD_LABELS['device_selection'],
            value=get_device_name(answers.device_selection),
        ))

    if answers.last_doctor_visit is not None:
        rows.append(SummaryRow(
            step=StepId.LAST_DOCTOR_VISIT,
            label=FIELD_LABELS['last_doctor_visit'],
            value=format_boolean(answers.last_doctor_visit),
        ))

    return rows


def format_summary_text(rows: List[SummaryRow], width: int = 60) -> str:
    """
    Plain-text rendering of the summary for console output.

    Example:
        Your CGM Experience Profile
        ------------------------------------------------------------
        Currently Using CGM ............................ Yes
    """
    lines = ["Your CGM Experience Profile", "-" * width]
    for row in rows:
        dots = max(width - len(row.label) - len(row.value) - 2, 3)
        lines.append(f"{row.label} {'.' * dots} {row.value}")
    return "\n".join(lines)
