"""Example 1: Basic Usage

This example logs in to a Mango server, creates a virtual data source,
lists data points and loads the latest values of one point into a
DataFrame.

Connection settings come from MANGO_* environment variables (or .env),
for example MANGO_HOST, MANGO_USERNAME and MANGO_PASSWORD.
"""

import asyncio
import logging

from mangoclient import MangoClient, MangoHTTPError
from mangoclient.config import get_settings


async def run() -> None:
    settings = get_settings()

    async with MangoClient.from_settings(settings) as client:
        # Step 1: Log in. Retries cover a server that is still starting.
        print("Step 1: Logging in...")
        user = await client.User.login(
            settings.username or "admin",
            settings.password or "admin",
            retries=5,
            retry_delay=2.0,
        )
        print(f"  Logged in as {user.username}")
        print()

        # Step 2: Create a data source
        print("Step 2: Creating a virtual data source...")
        data_source = client.DataSource({
            "name": "Example virtual source",
            "modelType": "VIRTUAL",
            "pollPeriod": {"periods": 5, "type": "SECONDS"},
        })
        await data_source.save()
        print(f"  Saved {data_source.xid} (id {data_source.id})")
        print()

        # Step 3: List data points
        print("Step 3: Listing data points...")
        points = await client.DataPoint.query("limit(10)")
        for point in points:
            print(f"  {point.xid:<20} {point.name}")
        print()

        # Step 4: Latest values of the first point
        if points:
            xid = points[0].xid
            print(f"Step 4: Latest values of {xid}...")
            values = await client.point_values.latest(xid, limit=20)
            frame = client.point_values.to_frame(values)
            print(frame.tail())
            print()

        # Step 5: Clean up
        print("Step 5: Deleting the data source...")
        try:
            await data_source.delete()
        except MangoHTTPError as e:
            print(f"  Delete failed: {e}")
        await client.User.logout()
        print("  Done")


def main():
    """Run basic usage example."""
    logging.basicConfig(level=logging.WARNING)
    print("=" * 60)
    print("Mango client - Example 1: Basic Usage")
    print("=" * 60)
    print()
    asyncio.run(run())


if __name__ == "__main__":
    main()
