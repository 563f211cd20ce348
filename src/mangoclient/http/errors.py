"""Error taxonomy for the request pipeline.

Three failure kinds, all retryable:
- MangoTransportError: no response was obtained (refused, DNS, reset, timeout)
- MangoDecodeError: a body arrived but could not be decoded
- MangoHTTPError: the server answered with status >= 400

Callers that do not care about the kind catch MangoError.
"""

from typing import Any, Mapping


class MangoError(Exception):
    """Base exception for request pipeline failures."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = headers or {}
        self.data = data


class MangoTransportError(MangoError):
    """No response was received."""


class MangoDecodeError(MangoError):
    """The response body could not be decoded in the requested mode."""


class MangoHTTPError(MangoError):
    """The server responded with an error status."""

    def __init__(
        self,
        status_code: int,
        reason: str,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(
            f"Mango HTTP error - {status_code} {reason}",
            status_code=status_code,
            headers=headers,
            data=data,
        )
        self.reason = reason
