"""
Console Test Harness for FlowController

Simple console loop to walk the questionnaire without the web API.
"""

import argparse
import logging
import sys

from cgm_flow.catalog import DEVICE_UPDATE_RANGES, SENSORS_ORDERED_RANGES, get_catalog
from cgm_flow.commands import AnswerQuestion, EditStep, GoBack, GoNext, ReturnToSummary, StartOver
from cgm_flow.config import DEFAULT_STATE_DIR, STORAGE_KEY
from cgm_flow.contracts import BOOLEAN_FIELDS, StepId
from cgm_flow.core.flow_controller import FlowController
from cgm_flow.core.navigation import STEP_FIELDS
from cgm_flow.persistence import JSONFileStore, MemoryStore
from cgm_flow.results import FlowCompleted, IllegalCommand
from cgm_flow.utils.display_helpers import format_summary_text

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

YES = {'y', 'yes', 'true'}
NO = {'n', 'no', 'false'}

HELP_TEXT = (
    "Commands: back | summary (return to summary) | edit <step> | restart | quit\n"
    "Answer yes/no questions with 'yes' or 'no', selections with the option id."
)


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_options(step):
    """Print selectable options for a step"""
    catalog = get_catalog()

    if step in (StepId.CURRENT_DEVICE, StepId.DEVICE_SELECTION):
        for device in catalog.devices:
            print(f"  [{device.id}] {device.name}")
    elif step is StepId.LAST_DEVICE_UPDATE:
        for time_range in catalog.time_ranges[DEVICE_UPDATE_RANGES]:
            print(f"  [{time_range.id}] {time_range.label}")
    elif step is StepId.LAST_SENSORS_ORDERED:
        for time_range in catalog.time_ranges[SENSORS_ORDERED_RANGES]:
            print(f"  [{time_range.id}] {time_range.label}")
    elif step in STEP_FIELDS and STEP_FIELDS[step] in BOOLEAN_FIELDS:
        print("  [yes] Yes")
        print("  [no]  No")
    elif step is StepId.INELIGIBLE_SELECTION:
        print(f"  Questions? Call customer support at {catalog.support_phone}.")


def print_view(view):
    """Render the current step"""
    print()
    print_separator("-")
    print(f"Step {view.step_number}: {view.title}" + ("  (editing)" if view.editing else ""))
    print(view.question)
    print_separator("-")

    if view.summary:
        print(format_summary_text(view.summary))
        print("\nType 'next' to finish or 'edit <step>' to change an answer.")
    else:
        print_options(view.step)

    if view.validation_error:
        print(f"\n!! {view.validation_error}")


def parse_input(user_input, step):
    """Translate console input into a command (None = not understood)"""
    words = user_input.strip().split()
    if not words:
        return None

    keyword = words[0].lower()

    if keyword == 'back':
        return GoBack()
    if keyword == 'next':
        return GoNext()
    if keyword == 'summary':
        return ReturnToSummary()
    if keyword == 'restart':
        return StartOver()
    if keyword == 'edit' and len(words) == 2:
        return EditStep(target=words[1])

    field_name = STEP_FIELDS.get(step)
    if field_name is None:
        return None

    if field_name in BOOLEAN_FIELDS:
        if keyword in YES:
            return AnswerQuestion(field=field_name, value=True)
        if keyword in NO:
            return AnswerQuestion(field=field_name, value=False)
        return None

    return AnswerQuestion(field=field_name, value=user_input.strip())


def main():
    """Run console flow"""
    parser = argparse.ArgumentParser(description="CGM replacement flow (console)")
    parser.add_argument('--persist', action='store_true',
                        help=f"save progress under {DEFAULT_STATE_DIR}")
    args = parser.parse_args()

    store = JSONFileStore(DEFAULT_STATE_DIR) if args.persist else MemoryStore()
    controller = FlowController.restore(store, storage_key=STORAGE_KEY)

    print_separator()
    print("CGM REPLACEMENT FLOW - CONSOLE")
    print_separator()
    print(HELP_TEXT)

    print_view(controller.view())

    while True:
        try:
            user_input = input("\n> ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            return 0

        if user_input.strip().lower() in {'quit', 'exit'}:
            print("Exiting.")
            return 0

        command = parse_input(user_input, controller.current_step)
        if command is None:
            print(HELP_TEXT)
            continue

        try:
            result = controller.handle(command)
        except ValueError as e:
            print(f"!! {e}")
            continue

        if isinstance(result, IllegalCommand):
            print(f"!! {result.reason}")
            continue

        if isinstance(command, AnswerQuestion) and not controller.editing:
            # Outside edit mode an answer is followed by Next
            result = controller.next()

        if isinstance(result, FlowCompleted):
            print_separator()
            print("Thank you for completing the CGM device selection experience.")
            print_separator()
            return 0

        print_view(result.view)


if __name__ == "__main__":
    sys.exit(main())
