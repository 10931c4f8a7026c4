"""
Flask Web Application for the CGM Replacement Flow

JSON API over FlowController plus a proxy to the upstream patient API.
Each browser session gets its own persisted snapshot; a controller is
rebuilt from it on every request.
"""

from flask import Flask, jsonify, request, session
import logging

from cgm_flow.api.errors import get_error_message, is_api_error
from cgm_flow.catalog import DEVICE_UPDATE_RANGES, SENSORS_ORDERED_RANGES, get_catalog
from cgm_flow.commands import (
    AnswerQuestion,
    EditStep,
    GoBack,
    GoNext,
    ReturnToSummary,
    StartFlow,
    StartOver,
)
from cgm_flow.config import TEST_PATIENT_ID, AppConfig
from cgm_flow.contracts import StepId
from cgm_flow.core.flow_controller import FlowController
from cgm_flow.persistence import JSONFileStore
from cgm_flow.results import FlowCompleted, IllegalCommand
from cgm_flow.services.patient_service import EligibleDevicesLoader, PatientService
from cgm_flow.utils.helpers import generate_session_id, session_storage_key

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SESSION_ID_KEY = 'flow_session_id'

# Steps whose options come from the device catalog
DEVICE_STEPS = {StepId.CURRENT_DEVICE, StepId.DEVICE_SELECTION}
TIME_RANGE_STEPS = {
    StepId.LAST_DEVICE_UPDATE: DEVICE_UPDATE_RANGES,
    StepId.LAST_SENSORS_ORDERED: SENSORS_ORDERED_RANGES,
}


def _log_completion(answers):
    """Completion collaborator: hand-off point for submission/analytics"""
    logger.info(f"Flow completed: {answers.to_json()}")


def create_app(store=None, patient_service=None, config=None):
    """
    Build the Flask app.

    Args:
        store: KeyValueStore for flow snapshots (defaults to JSONFileStore)
        patient_service: PatientService for upstream calls
        config: AppConfig (defaults to environment)
    """
    config = config or AppConfig.from_env()

    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.secret_key

    flow_store = store if store is not None else JSONFileStore(config.state_dir)
    patients = patient_service or PatientService()

    def load_controller():
        """Controller for the caller's session (fresh if none saved)"""
        if SESSION_ID_KEY not in session:
            session[SESSION_ID_KEY] = generate_session_id(short=False)
            logger.info(f"New flow session: {session[SESSION_ID_KEY]}")

        return FlowController.restore(
            flow_store,
            storage_key=session_storage_key(session[SESSION_ID_KEY]),
            on_complete=_log_completion,
        )

    def step_options(view):
        """Selectable options for the current step"""
        if view.step in DEVICE_STEPS:
            if view.step is StepId.DEVICE_SELECTION and config.api_integration_enabled:
                loader = EligibleDevicesLoader(patients, patient_id=request.args.get('patientId'))
                loader.refetch()
                return {
                    'devices': [device.to_json() for device in loader.devices],
                    'error': loader.error,
                }
            return {'devices': [device.to_json() for device in get_catalog().devices]}

        kind = TIME_RANGE_STEPS.get(view.step)
        if kind is not None:
            return {
                'timeRanges': [
                    {'id': time_range.id, 'label': time_range.label}
                    for time_range in get_catalog().time_ranges.get(kind, [])
                ]
            }

        if view.step is StepId.INELIGIBLE_SELECTION:
            return {'supportPhone': get_catalog().support_phone}

        return {}

    def run(command):
        """Execute a command and translate the result to a response"""
        try:
            controller = load_controller()
            result = controller.handle(command)
        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400
        except Exception as e:
            logger.error(f"Error handling {type(command).__name__}: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

        if isinstance(result, IllegalCommand):
            return jsonify({
                'success': False,
                'error': result.reason,
                'command': result.command_type,
                'view': controller.view().to_json(),
            }), 400

        body = {
            'success': True,
            'view': result.view.to_json(),
            'options': step_options(result.view),
            'completed': isinstance(result, FlowCompleted),
        }
        if isinstance(result, FlowCompleted):
            body['answers'] = result.answers.to_json()
        return jsonify(body)

    @app.route('/api/flow', methods=['GET'])
    def get_flow():
        """Current step of the caller's session"""
        return run(StartFlow())

    @app.route('/api/flow/answer', methods=['POST'])
    def answer():
        """Record an answer: {"field": "currentDevice", "value": "dexcom-g7"}"""
        data = request.get_json(silent=True) or {}
        field_name = data.get('field')
        if not field_name:
            return jsonify({'success': False, 'error': 'field is required'}), 400
        return run(AnswerQuestion(field=field_name, value=data.get('value')))

    @app.route('/api/flow/next', methods=['POST'])
    def next_step():
        return run(GoNext())

    @app.route('/api/flow/back', methods=['POST'])
    def previous_step():
        return run(GoBack())

    @app.route('/api/flow/return-to-summary', methods=['POST'])
    def return_to_summary():
        return run(ReturnToSummary())

    @app.route('/api/flow/edit', methods=['POST'])
    def edit_step():
        """Edit one answer from the summary: {"step": "current-device"}"""
        data = request.get_json(silent=True) or {}
        return run(EditStep(target=data.get('step')))

    @app.route('/api/flow/start-over', methods=['POST'])
    def start_over():
        return run(StartOver())

    @app.route('/api/patients/devices', methods=['GET'])
    def patient_devices():
        """
        Proxy to the upstream patient API (keeps the API key server-side).

        Query params:
            patientId (optional): defaults to TEST_PATIENT_ID
        """
        patient_id = request.args.get('patientId') or TEST_PATIENT_ID

        try:
            devices = patients.fetch_eligible_devices(patient_id)
        except Exception as e:
            logger.error(f"Error fetching eligible devices: {e}")

            status_code = 500
            if is_api_error(e):
                status_code = e.status_code or 500

            return jsonify({
                'success': False,
                'error': {
                    'message': get_error_message(e),
                    'code': e.code if is_api_error(e) else 'INTERNAL_SERVER_ERROR',
                },
            }), status_code

        return jsonify({
            'success': True,
            'data': [device.to_json() for device in devices],
            'patientId': patient_id,
            'count': len(devices),
        })

    logger.info(f"Flow app created (state dir: {config.state_dir})")
    return app


if __name__ == '__main__':
    app = create_app()

    # Start Flask server
    print("\n" + "=" * 60)
    print("CGM REPLACEMENT FLOW - WEB API")
    print("=" * 60)
    print("\nServer starting...")
    print("API available at: http://localhost:5000/api/flow")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(debug=False, host='0.0.0.0', port=5000)
