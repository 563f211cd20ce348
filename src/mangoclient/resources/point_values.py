"""Point value history: latest values, time ranges and bulk insertion.

Point values come back as JSON records with an epoch-millisecond
``timestamp`` and a ``value``; to_frame() turns them into a time-indexed
DataFrame.

Usage:
    values = await client.point_values.for_time_period(
        "DP_boiler_temp", from_=start, to=end,
    )
    frame = PointValues.to_frame(values)
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import pandas as pd

if TYPE_CHECKING:
    from mangoclient.client import MangoClient

logger = logging.getLogger(__name__)


class PointValues:
    """Point value endpoints of one client.

    Args:
        client: Client the requests are sent through
    """

    v2_url = "/rest/v2/point-values"
    v1_url = "/rest/v1/point-values"

    def __init__(self, client: "MangoClient") -> None:
        self.client = client

    async def latest(
        self,
        xid: str,
        limit: int | None = None,
        use_rendered: bool | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent values of a point, newest first."""
        response = await self.client.rest_request(
            f"{self.v2_url}/latest/{quote(xid, safe='')}",
            params={"limit": limit, "useRendered": use_rendered},
        )
        return response.data or []

    async def for_time_period(
        self,
        xid: str,
        from_: datetime,
        to: datetime,
        rollup: str | None = None,
        time_period_type: str | None = None,
        time_periods: int | None = None,
    ) -> list[dict[str, Any]]:
        """Values of a point between ``from_`` and ``to``, optionally rolled up.

        Args:
            xid: Data point xid
            from_: Start of the range (inclusive)
            to: End of the range (exclusive)
            rollup: Rollup function such as 'AVERAGE' or 'MAXIMUM'
            time_period_type: Rollup period unit such as 'MINUTES'
            time_periods: Number of units per rollup period
        """
        path = f"{self.v2_url}/time-period/{quote(xid, safe='')}"
        if rollup:
            path = f"{path}/{rollup}"

        response = await self.client.rest_request(
            path,
            params={
                "from": from_,
                "to": to,
                "timePeriodType": time_period_type,
                "timePeriods": time_periods,
            },
        )
        return response.data or []

    async def first_last(self, xid: str, from_: datetime, to: datetime) -> list[dict[str, Any]]:
        """First and last values of a point within a range."""
        response = await self.client.rest_request(
            f"{self.v1_url}/{quote(xid, safe='')}/first-last",
            params={"from": from_, "to": to},
        )
        return response.data or []

    async def insert(self, values: list[dict[str, Any]]) -> Any:
        """Insert point values, each carrying its own ``xid``."""
        logger.debug("Inserting %d point values", len(values))
        response = await self.client.rest_request(self.v2_url, method="POST", data=values)
        return response.data

    @staticmethod
    def to_frame(values: list[dict[str, Any]]) -> pd.DataFrame:
        """Convert point value records to a DataFrame indexed by UTC timestamp.

        Rows are sorted oldest first; the original record fields become columns.
        """
        if not values:
            return pd.DataFrame()

        df = pd.DataFrame(values)
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
        return df.set_index("timestamp").sort_index()
