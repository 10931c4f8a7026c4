"""
Unit tests for the upstream patient API client and error taxonomy

Tests HTTP status mapping with a mocked requests session
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import requests

from cgm_flow.api.client import APIClient
from cgm_flow.api.errors import (
    APIError,
    AuthError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
    get_error_message,
    is_api_error,
)
from cgm_flow.config import APIConfig


# ========================
# Mock Modules
# ========================

class MockResponse:
    """Mock requests.Response"""

    def __init__(self, status_code=200, body=None, reason='', json_error=False):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = reason
        self._body = body
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("No JSON object could be decoded")
        return self._body


class MockSession:
    """Mock requests.Session that records calls and replays one outcome"""

    def __init__(self, response=None, error=None):
        self.headers = {}
        self.calls = []
        self.response = response
        self.error = error

    def request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


CONFIG = APIConfig(base_url='https://api.example.test', api_key='secret', timeout=5.0)


def make_client(response=None, error=None):
    session = MockSession(response=response, error=error)
    return APIClient(config=CONFIG, session=session), session


# ========================
# Requests
# ========================

def test_client_sets_auth_headers():
    client, session = make_client(MockResponse(body={}))

    assert session.headers['Authorization'] == 'Bearer secret'
    assert session.headers['Content-Type'] == 'application/json'


def test_get_builds_url_and_uses_default_timeout():
    client, session = make_client(MockResponse(body={'ok': True}))

    data = client.get('/patients/devices', params={'patientId': 'p-1'})

    assert data == {'ok': True}
    call = session.calls[0]
    assert call['method'] == 'GET'
    assert call['url'] == 'https://api.example.test/patients/devices'
    assert call['params'] == {'patientId': 'p-1'}
    assert call['timeout'] == 5.0


def test_request_sends_json_body_and_timeout_override():
    client, session = make_client(MockResponse(body={'id': 1}))

    client.request('POST', '/orders', json_body={'deviceId': 'dexcom-g7'}, timeout=1.5)

    call = session.calls[0]
    assert call['method'] == 'POST'
    assert call['json'] == {'deviceId': 'dexcom-g7'}
    assert call['timeout'] == 1.5


@pytest.mark.parametrize('error', [
    requests.Timeout("read timed out"),
    requests.ConnectionError("connection refused"),
])
def test_transport_failures_become_network_errors(error):
    client, _ = make_client(error=error)

    with pytest.raises(NetworkError) as exc_info:
        client.get('/patients/devices')

    assert exc_info.value.status_code is None
    assert exc_info.value.code == 'NETWORK_ERROR'
    assert 'check your connection' in exc_info.value.message


# ========================
# Status mapping
# ========================

@pytest.mark.parametrize('status, error_class, expected_status', [
    (400, ValidationError, 400),
    (401, AuthError, 401),
    (403, AuthError, 401),
    (404, NotFoundError, 404),
    (500, ServerError, 500),
    (502, ServerError, 502),
    (503, ServerError, 503),
    (504, ServerError, 504),
])
def test_status_codes_map_to_error_classes(status, error_class, expected_status):
    client, _ = make_client(MockResponse(status_code=status, body={'message': 'upstream said no'}))

    with pytest.raises(error_class) as exc_info:
        client.get('/patients/devices')

    assert exc_info.value.status_code == expected_status
    assert exc_info.value.message == 'upstream said no'


def test_unmapped_status_is_generic_api_error():
    body = {'message': 'slow down', 'retryAfter': 10}
    client, _ = make_client(MockResponse(status_code=429, body=body))

    with pytest.raises(APIError) as exc_info:
        client.get('/patients/devices')

    error = exc_info.value
    assert type(error) is APIError
    assert error.status_code == 429
    assert error.response == body


def test_error_without_json_body_uses_reason():
    client, _ = make_client(MockResponse(status_code=404, reason='Not Found', json_error=True))

    with pytest.raises(NotFoundError) as exc_info:
        client.get('/patients/devices')

    assert exc_info.value.message == 'Not Found'


def test_success_without_json_body_is_validation_error():
    client, _ = make_client(MockResponse(status_code=200, json_error=True))

    with pytest.raises(ValidationError):
        client.get('/patients/devices')


# ========================
# Error helpers
# ========================

def test_error_helpers():
    assert is_api_error(ServerError())
    assert not is_api_error(RuntimeError('boom'))

    assert get_error_message(AuthError()) == 'Authentication failed'
    assert get_error_message(RuntimeError('boom')) == 'boom'
    assert get_error_message(RuntimeError()) == 'An unexpected error occurred'
    assert get_error_message('not an exception') == 'An unexpected error occurred'


def test_validation_error_carries_field():
    error = ValidationError('Patient ID is required', 'patientId')

    assert error.field == 'patientId'
    assert error.status_code == 400
    assert isinstance(error, APIError)
