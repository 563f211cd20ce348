"""Event detectors: alarm conditions evaluated by the server on data points.

create_event_detector() returns an unsaved detector of a given type with
working defaults, ready to be adjusted and saved:

    detector = client.EventDetector.create_event_detector(point.id, "HIGH_LIMIT")
    detector.limit = 80
    await detector.save()
"""

import uuid
from typing import Any

from mangoclient.resources.base import MangoObject

# Type-specific properties, on top of the common ones added by create_event_detector()
DETECTOR_DEFAULTS: dict[str, dict[str, Any]] = {
    "BINARY_STATE": {"state": True},
    "NO_UPDATE": {},
    "NO_CHANGE": {},
    "STATE_CHANGE_COUNT": {"changeCount": 2},
    "ALPHANUMERIC_REGEX_STATE": {"state": ".*"},
    "ANALOG_CHANGE": {"checkIncrease": True, "checkDecrease": False, "limit": 15},
    # resetLimit must stay below limit while notHigher is false
    "HIGH_LIMIT": {"resetLimit": 10, "useResetLimit": True, "notHigher": False, "limit": 15},
    "LOW_LIMIT": {"resetLimit": 10, "useResetLimit": True, "notLower": True, "limit": 15},
    "RANGE": {"high": 100, "low": 50, "withinRange": True},
    "NEGATIVE_CUSUM": {"limit": 50, "weight": 100},
    "POSITIVE_CUSUM": {"limit": 10, "weight": 50},
    "SMOOTHNESS": {"limit": 100, "boxcar": 3},
    "MULTISTATE_STATE": {"state": 1},
}


class UnknownDetectorTypeError(ValueError):
    """Raised for a detector type create_event_detector() has no defaults for."""


class EventDetector(MangoObject):
    """Event detector stored at /rest/v3/event-detectors."""

    base_url = "/rest/v3/event-detectors"

    @classmethod
    def default_properties(cls) -> dict[str, Any]:
        xid = str(uuid.uuid4())
        return {
            "xid": xid,
            "name": f"{xid} Name",
            "alarmLevel": "NONE",
        }

    @classmethod
    def create_event_detector(cls, data_point_id: int, detector_type: str) -> "EventDetector":
        """Build an unsaved detector of ``detector_type`` on a data point.

        Args:
            data_point_id: Numeric id of the data point the detector watches
            detector_type: One of DETECTOR_DEFAULTS' keys (e.g. 'HIGH_LIMIT')

        Returns:
            New EventDetector with a fresh xid and a 10 second duration

        Raises:
            UnknownDetectorTypeError: If detector_type is not recognized
        """
        try:
            specific = DETECTOR_DEFAULTS[detector_type]
        except KeyError:
            raise UnknownDetectorTypeError(
                f"Unknown event detector type '{detector_type}', "
                f"expected one of {sorted(DETECTOR_DEFAULTS)}"
            ) from None

        xid = str(uuid.uuid4())
        return cls({
            "xid": xid,
            "name": f"{xid} Name",
            "duration": {"periods": 10, "type": "SECONDS"},
            "alarmLevel": "NONE",
            **specific,
            "detectorSourceType": "DATA_POINT",
            "sourceId": data_point_id,
            "detectorType": detector_type,
        })
