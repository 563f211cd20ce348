"""Async request pipeline over a persistent httpx connection pool.

Turns a RequestDescriptor into a completed HTTP exchange:
- Query string encoding (date-like values as ISO-8601)
- JSON or multipart body, never both
- XSRF and Cookie headers from the session, Set-Cookie applied back to it
- Streaming the body to a file or buffering it in memory
- Decoding as JSON, text or raw bytes
- Fixed-delay retries on any failure

Usage:
    session = Session()
    async with RequestPipeline("http://localhost:8080", session) as pipeline:
        response = await pipeline.execute(RequestDescriptor(path="/rest/v1/users/current"))
"""

import asyncio
import json
import logging
from contextlib import ExitStack
from datetime import date
from http.cookiejar import CookieJar, DefaultCookiePolicy
from pathlib import Path
from typing import Any

import httpx

from mangoclient.http.errors import (
    MangoDecodeError,
    MangoError,
    MangoHTTPError,
    MangoTransportError,
)
from mangoclient.http.request import DataType, RequestDescriptor, Response, format_timestamp
from mangoclient.http.session import Session

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return format_timestamp(value)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _no_cookie_jar() -> CookieJar:
    """A jar that refuses every cookie, so the Session stays the only cookie state."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class RequestPipeline:
    """Executes request descriptors against one server.

    Args:
        base_url: Scheme, host and port of the server
        session: Cookie jar and default headers shared by all requests
        verify: Verify TLS certificates (https only)
        timeout: Connection-level timeout in seconds
        transport: Optional httpx transport replacing the network layer
    """

    def __init__(
        self,
        base_url: str,
        session: Session,
        verify: bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.verify = verify
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RequestPipeline":
        """Open the keep-alive connection pool."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=self.verify,
            timeout=self.timeout,
            cookies=_no_cookie_jar(),
            transport=self.transport,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute(self, descriptor: RequestDescriptor) -> Response:
        """Run one request, retrying on failure as the descriptor allows.

        Makes at most ``descriptor.retries + 1`` attempts, sleeping
        ``descriptor.retry_delay`` seconds between them. Only the outcome of
        the last attempt reaches the caller.

        Args:
            descriptor: The request to run

        Returns:
            Response with status, decoded body and headers

        Raises:
            MangoTransportError: No response was received
            MangoDecodeError: The body could not be decoded
            MangoHTTPError: The server answered with status >= 400
        """
        if not self._client:
            raise RuntimeError("Pipeline not initialized. Use async with context manager.")

        attempts = descriptor.retries + 1
        last_error: MangoError | None = None

        for attempt in range(attempts):
            logger.debug(
                "%s %s (attempt %d/%d)",
                descriptor.method, descriptor.path, attempt + 1, attempts,
            )
            try:
                return await self._attempt(descriptor)
            except MangoError as e:
                last_error = e
                if attempt + 1 < attempts:
                    logger.warning(
                        "%s %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                        descriptor.method, descriptor.path, e, descriptor.retry_delay,
                        attempt + 1, attempts,
                    )
                    await asyncio.sleep(descriptor.retry_delay)

        logger.error("%s %s failed: %s", descriptor.method, descriptor.path, last_error)
        raise last_error

    async def _attempt(self, descriptor: RequestDescriptor) -> Response:
        path = descriptor.build_path()
        headers = httpx.Headers({"Accept": "application/json"})

        with ExitStack() as stack:
            content: bytes | None = None
            files: list[tuple[str, tuple[str, Any]]] | None = None

            if descriptor.data is not None:
                content = json.dumps(descriptor.data, default=_json_default).encode("utf-8")
                headers["Content-Type"] = "application/json"
                headers["Content-Length"] = str(len(content))
            elif descriptor.upload_files:
                files = []
                for file_name in descriptor.upload_files:
                    base_name = Path(file_name).name
                    handle = stack.enter_context(open(file_name, "rb"))
                    files.append((base_name, (base_name, handle)))

            headers.update(self.session.request_headers())
            headers.update(self.session.default_headers)
            if descriptor.headers:
                headers.update(descriptor.headers)

            request = self._client.build_request(
                descriptor.method,
                path,
                content=content,
                files=files,
                headers=headers,
            )

            try:
                response = await self._client.send(request, stream=True)
            except httpx.RequestError as e:
                raise MangoTransportError(f"Request to {path} failed: {e}") from e

        try:
            logger.debug("Response: %d for %s", response.status_code, path)
            self.session.apply_set_cookie(response.headers.get_list("set-cookie"))
            body = await self._read_body(response, descriptor.write_to_file)
        except httpx.DecodingError as e:
            raise MangoDecodeError(
                f"Invalid {response.headers.get('content-encoding', 'encoded')} response body: {e}",
                status_code=response.status_code,
                headers=response.headers,
            ) from e
        except httpx.RequestError as e:
            raise MangoTransportError(f"Reading response from {path} failed: {e}") from e
        finally:
            await response.aclose()

        data = self._decode(body, descriptor.data_type, response)

        if response.status_code >= 400:
            raise MangoHTTPError(
                status_code=response.status_code,
                reason=response.reason_phrase,
                headers=response.headers,
                data=data,
            )

        return Response(status=response.status_code, data=data, headers=response.headers)

    async def _read_body(self, response: httpx.Response, write_to_file: str | Path | None) -> bytes:
        """Buffer the body, or stream it into ``write_to_file`` and return nothing."""
        if write_to_file is None:
            return await response.aread()

        with open(write_to_file, "wb") as fh:
            async for chunk in response.aiter_bytes():
                fh.write(chunk)
        return b""

    @staticmethod
    def _decode(body: bytes, data_type: DataType, response: httpx.Response) -> Any:
        if not body:
            return None
        if data_type is DataType.BUFFER:
            return body

        try:
            text = body.decode("utf-8")
            if data_type is DataType.STRING:
                return text
            return json.loads(text)
        except ValueError as e:
            raise MangoDecodeError(
                f"Invalid {data_type.value} response: {e}",
                status_code=response.status_code,
                headers=response.headers,
                data=body,
            ) from e
