"""Async Python client for the Mango automation platform REST API."""

from mangoclient.client import MangoClient
from mangoclient.http import (
    DataType,
    MangoDecodeError,
    MangoError,
    MangoHTTPError,
    MangoTransportError,
    RequestDescriptor,
    Response,
)
from mangoclient.resources import UnknownDetectorTypeError

__version__ = "0.1.0"

__all__ = [
    "DataType",
    "MangoClient",
    "MangoDecodeError",
    "MangoError",
    "MangoHTTPError",
    "MangoTransportError",
    "RequestDescriptor",
    "Response",
    "UnknownDetectorTypeError",
    "__version__",
]
