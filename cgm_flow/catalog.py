"""
Static reference data for the CGM flow.

Loads the device catalog, time-range options and step illustrations from
data/flow_catalog.json once per process. The catalog is read-only: the flow
never mutates it, and eligibility of a device for a given patient comes from
the upstream patient API, not from here.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from cgm_flow.contracts import Device, StepId, StepImage, TimeRange

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).parent / "data" / "flow_catalog.json"

# Catalog ids with structural meaning for the flow engine
OTHER_DEVICE_ID = "other"
FIVE_PLUS_YEARS_ID = "5-plus-years"

DEVICE_UPDATE_RANGES = "device_update"
SENSORS_ORDERED_RANGES = "sensors_ordered"


class FlowCatalog:
    """Read-only view over the catalog JSON file"""

    def __init__(self, catalog_path: Path = CATALOG_PATH):
        """
        Load catalog from disk.

        Args:
            catalog_path: Path to catalog JSON file

        Raises:
            FileNotFoundError: If catalog doesn't exist
            ValueError: If catalog is missing required sections
        """
        catalog_file = Path(catalog_path)
        if not catalog_file.exists():
            raise FileNotFoundError(f"Flow catalog not found: {catalog_path}")

        with open(catalog_file, 'r') as f:
            raw = json.load(f)

        for key in ('devices', 'time_ranges', 'step_images'):
            if key not in raw:
                raise ValueError(f"Flow catalog missing required section: {key}")

        self.version = raw.get('version', 'unknown')
        self.support_phone = raw.get('support_phone', '')
        self.devices: List[Device] = [Device(**entry) for entry in raw['devices']]
        self.time_ranges: Dict[str, List[TimeRange]] = {
            kind: [TimeRange(**entry) for entry in entries]
            for kind, entries in raw['time_ranges'].items()
        }
        self.step_images: Dict[StepId, StepImage] = {
            StepId(step): StepImage(**image)
            for step, image in raw['step_images'].items()
        }
        self._devices_by_id = {device.id: device for device in self.devices}

        logger.info(
            f"Flow catalog loaded (version {self.version}, "
            f"{len(self.devices)} devices)"
        )

    def get_device(self, device_id: Optional[str]) -> Optional[Device]:
        if device_id is None:
            return None
        return self._devices_by_id.get(device_id)

    def get_time_range(self, kind: str, range_id: Optional[str]) -> Optional[TimeRange]:
        for time_range in self.time_ranges.get(kind, []):
            if time_range.id == range_id:
                return time_range
        return None

    def device_ids(self) -> List[str]:
        return [device.id for device in self.devices]

    def time_range_ids(self, kind: str) -> List[str]:
        return [time_range.id for time_range in self.time_ranges.get(kind, [])]


@lru_cache(maxsize=1)
def get_catalog() -> FlowCatalog:
    """Process-wide catalog (loaded on first use)"""
    return FlowCatalog()
