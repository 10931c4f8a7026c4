"""
Application configuration.

Values come from environment variables with safe defaults so the flow runs
locally without an upstream API configured.
"""

import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Persistence
STORAGE_KEY = "cgm-flow-state"
DEFAULT_STATE_DIR = "outputs/flow_state"

# Upstream endpoints
PATIENT_DEVICES_ENDPOINT = "/patients/devices"
CUSTOMER_PRICING_ENDPOINT = "/customer/pricing"

# Test/demo patient used when no patientId is supplied
TEST_PATIENT_ID = "demo-patient-12345"

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class APIConfig:
    """Upstream patient API settings"""
    base_url: str = ""
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "APIConfig":
        return cls(
            base_url=os.environ.get("PATIENT_API_BASE_URL", "").rstrip("/"),
            api_key=os.environ.get("PATIENT_API_KEY", ""),
            timeout=float(os.environ.get("PATIENT_API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
        )


@dataclass(frozen=True)
class AppConfig:
    """Web app settings"""
    secret_key: str = "cgm-flow-dev-secret-key"
    state_dir: str = DEFAULT_STATE_DIR
    api_integration_enabled: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            secret_key=os.environ.get("FLASK_SECRET_KEY", cls.secret_key),
            state_dir=os.environ.get("CGM_FLOW_STATE_DIR", DEFAULT_STATE_DIR),
            api_integration_enabled=_env_flag("ENABLE_API_INTEGRATION"),
        )
