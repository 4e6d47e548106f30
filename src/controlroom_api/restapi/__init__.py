"""Control Room REST API client package.

Provides an HTTP client for the Control Room REST API, the static catalog of
operations it can call and the payload types it builds or parses.

Exports:
    ControlRoomClient: HTTP client with authentication and an error channel.
    ControlRoomEndpoint: Validated Control Room base URL.
    Operation: Catalog entry describing one endpoint.
    OPERATIONS: The operation catalog, keyed by name.
    types: Module containing Pydantic models for API payloads.
    DEFAULT_TIMEOUT: Default HTTP request timeout.
"""

from . import types
from .catalog import OPERATIONS, HttpMethod, Operation, get_operation
from .client import DEFAULT_TIMEOUT, ControlRoomClient, ControlRoomEndpoint

__all__ = [
    "DEFAULT_TIMEOUT",
    "OPERATIONS",
    "ControlRoomClient",
    "ControlRoomEndpoint",
    "HttpMethod",
    "Operation",
    "get_operation",
    "types",
]
