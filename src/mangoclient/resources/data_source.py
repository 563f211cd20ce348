"""Data sources: the polling/collection configurations points belong to."""

import uuid
from typing import Any

from mangoclient.resources.base import MangoObject


class DataSource(MangoObject):
    """Data source stored at /rest/v3/data-sources."""

    base_url = "/rest/v3/data-sources"

    @classmethod
    def default_properties(cls) -> dict[str, Any]:
        xid = str(uuid.uuid4())
        return {
            "xid": xid,
            "name": f"{xid} Name",
            "enabled": False,
            "quantize": True,
            "useCron": False,
            "cronPattern": "",
            "pollPeriod": {"periods": 5, "type": "SECONDS"},
            "purgeSettings": {"override": False, "frequency": {"periods": 1, "type": "YEARS"}},
            "eventAlarmLevels": [],
            "editPermission": None,
        }

    @classmethod
    async def copy(cls, xid: str, copy_xid: str, copy_name: str) -> "DataSource":
        """Copy a data source (without its points) under a new xid and name."""
        response = await cls._request(
            f"/rest/v1/data-sources/copy/{xid}",
            method="PUT",
            params={"copyXid": copy_xid, "copyName": copy_name},
        )
        return cls.from_data(response.data)
