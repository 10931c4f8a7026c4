"""
Test Flask web API - flow routes and patient devices proxy

Run with: pytest tests/test_app.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from app import create_app
from cgm_flow.api.errors import NotFoundError
from cgm_flow.config import TEST_PATIENT_ID, AppConfig
from cgm_flow.contracts import Device
from cgm_flow.persistence import MemoryStore


# ========================
# Mock Modules
# ========================

class MockPatientService:
    """Mock PatientService with a fixed device list (or failure)"""

    def __init__(self, devices=None, error=None):
        self.devices = devices or []
        self.error = error
        self.requested = []

    def fetch_eligible_devices(self, patient_id):
        self.requested.append(patient_id)
        if self.error is not None:
            raise self.error
        return list(self.devices)


ELIGIBLE = [Device(id='dexcom-g7', name='Dexcom G7', description='Dexcom G7', image='/img/g7.png')]


def make_client(tmp_path, patient_service=None, api_integration_enabled=False):
    config = AppConfig(
        secret_key='test-secret',
        state_dir=str(tmp_path),
        api_integration_enabled=api_integration_enabled,
    )
    app = create_app(
        store=MemoryStore(),
        patient_service=patient_service or MockPatientService(ELIGIBLE),
        config=config,
    )
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def client(tmp_path):
    return make_client(tmp_path)


def answer(client, field_name, value):
    return client.post('/api/flow/answer', json={'field': field_name, 'value': value})


# ========================
# Flow routes
# ========================

def test_get_flow_starts_session(client):
    response = client.get('/api/flow')
    data = response.get_json()

    assert response.status_code == 200
    assert data['success'] is True
    assert data['completed'] is False
    assert data['view']['step'] == 'currently-using-cgm'
    assert data['view']['stepNumber'] == 1
    assert data['view']['canGoBack'] is False
    assert data['view']['image']['src']
    assert data['options'] == {}


def test_full_new_user_flow(client):
    answer(client, 'currentlyUsingCGM', False)
    data = client.post('/api/flow/next').get_json()
    assert data['view']['step'] == 'device-selection'
    assert {d['id'] for d in data['options']['devices']} >= {'dexcom-g7', 'no-preference'}

    answer(client, 'deviceSelection', 'no-preference')
    assert client.post('/api/flow/next').get_json()['view']['step'] == 'last-doctor-visit'

    answer(client, 'lastDoctorVisit', False)
    data = client.post('/api/flow/next').get_json()
    assert data['view']['step'] == 'summary'
    assert data['view']['isLastStep'] is True
    assert data['view']['summary'][0]['label'] == 'Currently Using CGM'

    data = client.post('/api/flow/next').get_json()
    assert data['completed'] is True
    assert data['answers']['deviceSelection'] == 'no-preference'


def test_state_survives_between_requests(client):
    answer(client, 'currentlyUsingCGM', True)
    client.post('/api/flow/next')

    data = client.get('/api/flow').get_json()

    assert data['view']['step'] == 'current-device'
    assert data['view']['answers']['currentlyUsingCGM'] is True


def test_next_without_answer_reports_validation_error(client):
    data = client.post('/api/flow/next').get_json()

    assert data['success'] is True
    assert data['view']['step'] == 'currently-using-cgm'
    assert data['view']['validationError'] == 'Please select whether you are currently using a CGM device.'


def test_time_range_options(client):
    answer(client, 'currentlyUsingCGM', True)
    client.post('/api/flow/next')
    answer(client, 'currentDevice', 'dexcom-g6')
    data = client.post('/api/flow/next').get_json()

    assert data['view']['step'] == 'last-device-update'
    assert [r['id'] for r in data['options']['timeRanges']] == [
        '0-1-year', '1-3-years', '3-4-years', '5-plus-years'
    ]


def test_ineligible_step_shows_support_phone(client):
    answer(client, 'currentlyUsingCGM', True)
    client.post('/api/flow/next')
    answer(client, 'currentDevice', 'other')
    client.post('/api/flow/next')
    answer(client, 'lastDeviceUpdate', '1-3-years')
    data = client.post('/api/flow/next').get_json()

    assert data['view']['step'] == 'ineligible-selection'
    assert data['options']['supportPhone']

    data = client.post('/api/flow/back').get_json()
    assert data['view']['step'] == 'last-device-update'


def test_answer_requires_field(client):
    response = client.post('/api/flow/answer', json={'value': True})

    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_answer_with_wrong_type_is_bad_request(client):
    response = answer(client, 'currentlyUsingCGM', 'sometimes')

    assert response.status_code == 400
    assert 'boolean' in response.get_json()['error']


def test_edit_outside_summary_is_rejected(client):
    response = client.post('/api/flow/edit', json={'step': 'current-device'})
    data = response.get_json()

    assert response.status_code == 400
    assert data['success'] is False
    assert data['command'] == 'EditStep'
    assert data['view']['step'] == 'currently-using-cgm'


def test_return_to_summary_outside_edit_is_rejected(client):
    response = client.post('/api/flow/return-to-summary')

    assert response.status_code == 400
    assert response.get_json()['command'] == 'ReturnToSummary'


def test_edit_and_return_to_summary(client):
    answer(client, 'currentlyUsingCGM', False)
    client.post('/api/flow/next')
    answer(client, 'deviceSelection', 'dexcom-g7')
    client.post('/api/flow/next')
    answer(client, 'lastDoctorVisit', True)
    client.post('/api/flow/next')

    data = client.post('/api/flow/edit', json={'step': 'device-selection'}).get_json()
    assert data['view']['step'] == 'device-selection'
    assert data['view']['editing'] is True

    answer(client, 'deviceSelection', 'libre-14-day')
    data = client.post('/api/flow/return-to-summary').get_json()

    assert data['view']['step'] == 'summary'
    assert data['view']['editing'] is False
    assert data['view']['answers']['deviceSelection'] == 'libre-14-day'


def test_start_over(client):
    answer(client, 'currentlyUsingCGM', True)
    client.post('/api/flow/next')

    data = client.post('/api/flow/start-over').get_json()

    assert data['view']['step'] == 'currently-using-cgm'
    assert data['view']['answers']['currentlyUsingCGM'] is None


def test_sessions_are_isolated(tmp_path):
    app_client = make_client(tmp_path)
    other_client = app_client.application.test_client()

    answer(app_client, 'currentlyUsingCGM', True)
    app_client.post('/api/flow/next')

    assert other_client.get('/api/flow').get_json()['view']['step'] == 'currently-using-cgm'


def test_device_selection_uses_eligible_devices_when_enabled(tmp_path):
    service = MockPatientService(ELIGIBLE)
    client = make_client(tmp_path, patient_service=service, api_integration_enabled=True)

    answer(client, 'currentlyUsingCGM', False)
    data = client.post('/api/flow/next').get_json()

    assert [d['id'] for d in data['options']['devices']] == ['dexcom-g7']
    assert data['options']['error'] is None
    assert service.requested == [TEST_PATIENT_ID]


def test_device_selection_reports_loader_error(tmp_path):
    service = MockPatientService(error=NotFoundError('Patient not found'))
    client = make_client(tmp_path, patient_service=service, api_integration_enabled=True)

    answer(client, 'currentlyUsingCGM', False)
    data = client.post('/api/flow/next').get_json()

    # Navigation is unaffected by the failed fetch
    assert data['view']['step'] == 'device-selection'
    assert data['options']['devices'] == []
    assert data['options']['error'] == 'Patient not found'


# ========================
# Patient devices proxy
# ========================

def test_patient_devices_success(tmp_path):
    service = MockPatientService(ELIGIBLE)
    client = make_client(tmp_path, patient_service=service)

    response = client.get('/api/patients/devices?patientId=p-42')
    data = response.get_json()

    assert response.status_code == 200
    assert data['success'] is True
    assert data['patientId'] == 'p-42'
    assert data['count'] == 1
    assert data['data'][0]['name'] == 'Dexcom G7'
    assert service.requested == ['p-42']


def test_patient_devices_defaults_to_test_patient(tmp_path):
    service = MockPatientService(ELIGIBLE)
    client = make_client(tmp_path, patient_service=service)

    data = client.get('/api/patients/devices').get_json()

    assert data['patientId'] == TEST_PATIENT_ID


def test_patient_devices_api_error_status(tmp_path):
    client = make_client(tmp_path, patient_service=MockPatientService(error=NotFoundError('Patient not found')))

    response = client.get('/api/patients/devices?patientId=missing')
    data = response.get_json()

    assert response.status_code == 404
    assert data['success'] is False
    assert data['error'] == {'message': 'Patient not found', 'code': 'NOT_FOUND'}


def test_patient_devices_unexpected_error(tmp_path):
    client = make_client(tmp_path, patient_service=MockPatientService(error=RuntimeError('boom')))

    response = client.get('/api/patients/devices')
    data = response.get_json()

    assert response.status_code == 500
    assert data['error']['code'] == 'INTERNAL_SERVER_ERROR'
    assert data['error']['message'] == 'boom'
