"""
Patient service - upstream patient API operations

Responsibilities:
- Fetch the devices a patient is eligible for (device-selection catalog)
- Fetch customer pricing
- Validate a patient/device pairing

The flow engine does not depend on this module: which devices are eligible
only changes what the device-selection step offers, never the navigation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from cgm_flow.api.client import APIClient
from cgm_flow.api.device_mapping import (
    filter_eligible_devices,
    is_patient_device_response,
    map_device_data_to_device,
)
from cgm_flow.api.errors import APIError, ValidationError, get_error_message
from cgm_flow.config import CUSTOMER_PRICING_ENDPOINT, PATIENT_DEVICES_ENDPOINT, TEST_PATIENT_ID
from cgm_flow.contracts import Device

logger = logging.getLogger(__name__)


class PatientService:
    """Business operations on top of APIClient"""

    def __init__(self, client: Optional[APIClient] = None):
        self.client = client or APIClient()

    def fetch_eligible_devices(self, patient_id: str) -> List[Device]:
        """
        Fetch eligible devices for a patient.

        Args:
            patient_id: The patient's ID

        Returns:
            Eligible devices as catalog Device entries

        Raises:
            ValidationError: Missing patient_id or unexpected response shape
            APIError: Any other upstream failure
        """
        if not patient_id or not isinstance(patient_id, str):
            raise ValidationError("Patient ID is required", "patientId")

        data = self.client.get(PATIENT_DEVICES_ENDPOINT, params={'patientId': patient_id})

        if not is_patient_device_response(data):
            raise ValidationError(
                "Invalid API response format: expected PatientDeviceResponse structure"
            )

        eligible = filter_eligible_devices(data['eligibleDevices'])
        devices = [map_device_data_to_device(entry) for entry in eligible]

        logger.info(
            f"Patient {patient_id}: {len(devices)} of "
            f"{len(data['eligibleDevices'])} devices eligible"
        )
        return devices

    def fetch_customer_pricing(self, customer_id: str) -> Any:
        """
        Fetch pricing for a customer's eligible devices.

        Returns:
            Decoded upstream body (passed through unchanged)
        """
        if not customer_id or not isinstance(customer_id, str):
            raise ValidationError("Customer ID is required", "customerId")

        return self.client.get(CUSTOMER_PRICING_ENDPOINT, params={'customerId': customer_id})

    def validate_patient_device_eligibility(self, patient_id: str, device_id: str) -> bool:
        """
        Whether device_id is among the patient's eligible devices.

        Upstream failures count as "not eligible".
        """
        try:
            devices = self.fetch_eligible_devices(patient_id)
        except APIError as e:
            logger.warning(f"Eligibility check failed for {patient_id}/{device_id}: {e}")
            return False
        return any(device.id == device_id for device in devices)


@dataclass
class EligibleDevicesLoader:
    """
    Loading/error/data state for the device-selection catalog.

    Fetches on demand; refetch() is the explicit user-triggered retry.
    A failed fetch clears the device list and records a message, but never
    touches flow answers or navigation.

    Usage:
        loader = EligibleDevicesLoader(service, patient_id='p-1')
        loader.refetch()
        if loader.error:
            show_error(loader.error, retry=loader.refetch)
    """
    service: PatientService
    patient_id: Optional[str] = None
    devices: List[Device] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None

    def refetch(self) -> List[Device]:
        self.is_loading = True
        self.error = None
        self.error_code = None

        try:
            self.devices = self.service.fetch_eligible_devices(self.patient_id or TEST_PATIENT_ID)
        except APIError as e:
            self.devices = []
            self.error = get_error_message(e) or "Failed to fetch eligible devices"
            self.error_code = e.code
            logger.error(f"Failed to load eligible devices: {self.error}")
        except Exception as e:
            self.devices = []
            self.error = "An unexpected error occurred while fetching devices"
            self.error_code = "UNKNOWN_ERROR"
            logger.error(f"Unexpected error loading eligible devices: {e}")
        finally:
            self.is_loading = False

        return self.devices
