"""HTTP transport layer for the Mango client.

The request pipeline turns request descriptors into HTTP exchanges over one
keep-alive connection pool, keeping a session cookie jar along the way.
"""

from mangoclient.http.errors import (
    MangoDecodeError,
    MangoError,
    MangoHTTPError,
    MangoTransportError,
)
from mangoclient.http.pipeline import RequestPipeline
from mangoclient.http.request import DataType, RequestDescriptor, Response
from mangoclient.http.session import Cookie, Session, parse_set_cookie

__all__ = [
    "Cookie",
    "DataType",
    "MangoDecodeError",
    "MangoError",
    "MangoHTTPError",
    "MangoTransportError",
    "RequestDescriptor",
    "RequestPipeline",
    "Response",
    "Session",
    "parse_set_cookie",
]
