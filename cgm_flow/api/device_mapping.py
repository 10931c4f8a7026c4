"""
Reshape upstream device records into catalog Device entries.

The upstream format is loosely specified, so every field is looked up under
several candidate names before falling back to a placeholder.
"""

from typing import Any, Dict, List

from cgm_flow.contracts import Device

DEFAULT_DEVICE_IMAGE = "/images/cgm-flow/devices/generic.svg"


def is_patient_device_response(data: Any) -> bool:
    """Expected shape: {'patientId': str, 'eligibleDevices': [...]}"""
    return (
        isinstance(data, dict)
        and isinstance(data.get('patientId'), str)
        and isinstance(data.get('eligibleDevices'), list)
    )


def filter_eligible_devices(devices: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Keep devices the upstream marks eligible.

    Records without an 'eligible' flag are assumed eligible (their presence
    in the response is the signal). Non-dict entries are dropped.
    """
    eligible = []
    for device in devices:
        if not isinstance(device, dict):
            continue
        if 'eligible' in device and device['eligible'] is not True:
            continue
        eligible.append(device)
    return eligible


def map_device_data_to_device(device_data: Dict[str, Any]) -> Device:
    """
    Convert one upstream record to a Device.

    Examples:
        >>> map_device_data_to_device({'deviceId': 'dexcom-g7', 'deviceName': 'Dexcom G7'}).id
        'dexcom-g7'
        >>> map_device_data_to_device({'manufacturer': 'Abbott', 'model': 'L3'}).description
        'Abbott L3'
    """
    model = device_data.get('model')

    device_id = device_data.get('id') or device_data.get('deviceId') or model or 'unknown'
    name = device_data.get('name') or device_data.get('deviceName') or model or 'Unknown Device'

    description = device_data.get('description')
    if not description:
        description = f"{device_data.get('manufacturer') or ''} {model or ''}".strip()
    if not description:
        description = 'No description available'

    image = device_data.get('imageUrl') or DEFAULT_DEVICE_IMAGE

    return Device(id=str(device_id), name=str(name), description=str(description), image=str(image))
