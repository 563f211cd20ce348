"""Resource classes mapping server objects to local ones.

The classes here are unbound; use the copies bound to a MangoClient
(``client.DataSource`` and so on) to send requests.
"""

from mangoclient.resources.base import MangoObject, bind, extract_items
from mangoclient.resources.data_point import DataPoint
from mangoclient.resources.data_source import DataSource
from mangoclient.resources.event_detector import (
    DETECTOR_DEFAULTS,
    EventDetector,
    UnknownDetectorTypeError,
)
from mangoclient.resources.maintenance_event import MaintenanceEvent
from mangoclient.resources.point_values import PointValues
from mangoclient.resources.user import User

__all__ = [
    "DETECTOR_DEFAULTS",
    "DataPoint",
    "DataSource",
    "EventDetector",
    "MaintenanceEvent",
    "MangoObject",
    "PointValues",
    "UnknownDetectorTypeError",
    "User",
    "bind",
    "extract_items",
]
