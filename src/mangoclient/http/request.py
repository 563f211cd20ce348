"""Request descriptor and response result for the request pipeline.

A RequestDescriptor is the logical description of one outbound request.
Resource classes build descriptors; the pipeline turns them into HTTP
exchanges and hands back a Response.

Usage:
    descriptor = RequestDescriptor(
        path="/rest/v3/data-sources",
        params={"limit": 10},
        retries=2,
    )
    response = await pipeline.execute(descriptor)
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote, urlencode

DEFAULT_RETRY_DELAY = 5.0  # seconds


class DataType(Enum):
    """How the response body is decoded."""

    JSON = "json"
    BUFFER = "buffer"
    STRING = "string"


@dataclass
class RequestDescriptor:
    """One outbound request.

    Attributes:
        path: Request target, may already carry a query string
        method: HTTP verb
        params: Query parameters appended to the path
        data: JSON-serializable body
        upload_files: Local file paths sent as multipart form fields
        headers: Per-request header overrides
        data_type: Response decoding mode
        write_to_file: Local path the response body is streamed into
        retries: Extra attempts after the first failure
        retry_delay: Fixed delay between attempts (seconds)
    """

    path: str
    method: str = "GET"
    params: Mapping[str, Any] | None = None
    data: Any = None
    upload_files: list[str | Path] | None = None
    headers: Mapping[str, str] | None = None
    data_type: DataType = DataType.JSON
    write_to_file: str | Path | None = None
    retries: int = 0
    retry_delay: float = DEFAULT_RETRY_DELAY

    def __post_init__(self) -> None:
        if self.data is not None and self.upload_files:
            raise ValueError("A request cannot carry both a JSON body and file uploads")
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        self.method = self.method.upper()
        self.data_type = DataType(self.data_type)

    def build_path(self) -> str:
        """Return the path with the encoded query string appended."""
        query = encode_params(self.params)
        if not query:
            return self.path
        separator = "&" if "?" in self.path else "?"
        return f"{self.path}{separator}{query}"


@dataclass
class Response:
    """Completed HTTP exchange.

    ``data`` is None when the body was empty or streamed to a file.
    """

    status: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)


def format_timestamp(value: date) -> str:
    """Serialize a date-like value to ISO-8601.

    Aware datetimes are rendered in UTC with millisecond precision and a
    trailing ``Z``; naive datetimes keep their wall-clock time.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            utc = value.astimezone(timezone.utc).replace(tzinfo=None)
            return utc.isoformat(timespec="milliseconds") + "Z"
        return value.isoformat(timespec="milliseconds")
    return value.isoformat()


def _param_value(value: Any) -> str:
    if isinstance(value, date):
        return format_timestamp(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_params(params: Mapping[str, Any] | None) -> str:
    """Encode query parameters, expanding list values into repeated keys."""
    if not params:
        return ""

    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _param_value(item)) for item in value)
        else:
            pairs.append((key, _param_value(value)))

    return urlencode(pairs, quote_via=quote, safe="!'()*~")
