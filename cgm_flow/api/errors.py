"""
Error taxonomy for upstream patient API calls.

The flow engine never sees these: they stop at the patient service,
the eligible-devices loader and the proxy route.
"""

from typing import Any, Optional


class APIError(Exception):
    """
    Base class for upstream API failures.

    Attributes:
        message: Human-readable message
        status_code: HTTP status to report (None when no response was received)
        response: Parsed error body, if any
    """
    code = "API_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class NetworkError(APIError):
    """Connection failures and timeouts (no HTTP response)"""
    code = "NETWORK_ERROR"

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)


class ValidationError(APIError):
    """Invalid request data or unexpected response shape (400)"""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, 400)
        self.field = field


class AuthError(APIError):
    """Rejected credentials (401/403)"""
    code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, 401)


class NotFoundError(APIError):
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class ServerError(APIError):
    """Upstream 5xx responses"""
    code = "SERVER_ERROR"

    def __init__(self, message: str = "Server error occurred", status_code: int = 500):
        super().__init__(message, status_code)


def is_api_error(error: Any) -> bool:
    return isinstance(error, APIError)


def get_error_message(error: Any) -> str:
    """User-facing message for any exception"""
    if isinstance(error, APIError):
        return error.message
    if isinstance(error, Exception) and str(error):
        return str(error)
    return "An unexpected error occurred"
