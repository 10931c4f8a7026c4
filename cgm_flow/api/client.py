"""
HTTP client for the upstream patient API.

Centralizes base URL, bearer authentication, timeout and the mapping from
HTTP status codes to the APIError taxonomy. No retries: a failed call is
reported once and the caller decides whether to refetch.
"""

import logging
from typing import Any, Dict, Optional

import requests

from cgm_flow.api.errors import (
    APIError,
    AuthError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from cgm_flow.config import APIConfig

logger = logging.getLogger(__name__)


class APIClient:
    """Thin wrapper around a requests.Session"""

    def __init__(self, config: Optional[APIConfig] = None, session: Optional[requests.Session] = None):
        """
        Args:
            config: API settings (defaults to environment)
            session: Pre-built session (tests inject a mock here)
        """
        self.config = config or APIConfig.from_env()
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Authorization': f"Bearer {self.config.api_key}",
        })

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        return self.request('GET', endpoint, params=params, timeout=timeout)

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Raises:
            NetworkError: Connection failure or timeout
            ValidationError / AuthError / NotFoundError / ServerError / APIError:
                Non-2xx response, by status code
        """
        url = f"{self.config.base_url}{endpoint}"
        timeout = timeout if timeout is not None else self.config.timeout

        logger.info(f"{method} {endpoint} params={params}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                timeout=timeout,
            )
        except requests.Timeout:
            logger.error(f"{method} {endpoint} timed out after {timeout}s")
            raise NetworkError("Network request failed. Please check your connection and try again.")
        except requests.RequestException as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise NetworkError("Network request failed. Please check your connection and try again.")

        if not response.ok:
            self._raise_for_response(response)

        try:
            return response.json()
        except ValueError:
            raise ValidationError("Invalid API response format: body is not JSON")

    @staticmethod
    def _raise_for_response(response: requests.Response) -> None:
        """Map a non-2xx response onto the error taxonomy"""
        status = response.status_code
        message = f"Request failed with status {status}"
        error_data = None

        try:
            error_data = response.json()
            if isinstance(error_data, dict) and 'message' in error_data:
                message = str(error_data['message'])
        except ValueError:
            message = response.reason or message

        logger.warning(f"Upstream returned {status}: {message}")

        if status == 400:
            raise ValidationError(message)
        if status in (401, 403):
            raise AuthError(message)
        if status == 404:
            raise NotFoundError(message)
        if status in (500, 502, 503, 504):
            raise ServerError(message, status)
        raise APIError(message, status, error_data)
