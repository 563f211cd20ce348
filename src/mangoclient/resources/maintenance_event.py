"""Maintenance events, which suppress alarms for their data sources and points."""

from mangoclient.resources.base import MangoObject


class MaintenanceEvent(MangoObject):
    """Maintenance event stored at /rest/v2/maintenance-events."""

    base_url = "/rest/v2/maintenance-events"
