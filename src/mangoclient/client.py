"""Mango REST API client.

Owns one Session (cookie jar and default headers) and one RequestPipeline
(keep-alive connection pool), and exposes resource classes bound to them.

Usage:
    async with MangoClient(host="mango.local", protocol="https") as client:
        await client.User.login("admin", "admin")
        points = await client.DataPoint.query("limit(10)")

    # or from MANGO_* environment variables / .env
    async with MangoClient.from_settings(get_settings()) as client:
        ...
"""

import logging
from typing import Any

import httpx

from mangoclient.config import DEFAULT_PORTS, Settings
from mangoclient.http.pipeline import RequestPipeline
from mangoclient.http.request import RequestDescriptor, Response
from mangoclient.http.session import Session
from mangoclient.resources import (
    DataPoint,
    DataSource,
    EventDetector,
    MaintenanceEvent,
    MangoObject,
    PointValues,
    User,
    bind,
)

logger = logging.getLogger(__name__)


class MangoClient:
    """Async client for one Mango server.

    Args:
        host: Server host name (default: localhost)
        port: Server port (default: 8080 for http, 8443 for https)
        protocol: 'http' or 'https'
        reject_unauthorized: Verify TLS certificates (default: True)
        enable_cookies: Keep a session cookie jar (default: True)
        default_headers: Headers sent with every request
        timeout: Connection-level timeout in seconds (default: 30)
        transport: Optional httpx transport replacing the network layer
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int | None = None,
        protocol: str = "http",
        reject_unauthorized: bool = True,
        enable_cookies: bool = True,
        default_headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if protocol not in DEFAULT_PORTS:
            raise ValueError(f"protocol must be 'http' or 'https', got '{protocol}'")

        self.base_url = f"{protocol}://{host}:{port or DEFAULT_PORTS[protocol]}"
        self.session = Session(enable_cookies=enable_cookies, default_headers=default_headers)
        self.pipeline = RequestPipeline(
            base_url=self.base_url,
            session=self.session,
            verify=reject_unauthorized,
            timeout=timeout,
            transport=transport,
        )

        self.MangoObject = bind(MangoObject, self)
        self.DataSource = bind(DataSource, self)
        self.DataPoint = bind(DataPoint, self)
        self.EventDetector = bind(EventDetector, self)
        self.User = bind(User, self)
        self.MaintenanceEvent = bind(MaintenanceEvent, self)
        self.point_values = PointValues(self)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MangoClient":
        """Build a client from Settings; keyword arguments override them."""
        options: dict[str, Any] = {
            "host": settings.host,
            "port": settings.port,
            "protocol": settings.protocol,
            "reject_unauthorized": settings.reject_unauthorized,
            "enable_cookies": settings.enable_cookies,
            "timeout": settings.timeout,
        }
        options.update(kwargs)
        return cls(**options)

    async def __aenter__(self) -> "MangoClient":
        await self.pipeline.__aenter__()
        logger.debug("Connection pool opened for %s", self.base_url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.pipeline.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def default_headers(self) -> dict[str, str]:
        return self.session.default_headers

    def set_bearer_authentication(self, token: str) -> None:
        """Authenticate every following request with a bearer token."""
        self.session.set_bearer_authentication(token)

    def set_basic_authentication(self, username: str, password: str) -> None:
        """Authenticate every following request with basic credentials."""
        self.session.set_basic_authentication(username, password)

    async def execute(self, descriptor: RequestDescriptor) -> Response:
        return await self.pipeline.execute(descriptor)

    async def rest_request(self, path: str, **options: Any) -> Response:
        """Send one request; ``options`` are RequestDescriptor fields.

        Example:
            response = await client.rest_request(
                "/rest/v2/maintenance-events", method="POST", data=event,
            )
        """
        return await self.pipeline.execute(RequestDescriptor(path=path, **options))
