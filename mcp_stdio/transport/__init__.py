"""Line transports for the MCP serve loop."""

from .base import ConnectionError, MessageError, OversizedLine, Transport, TransportError
from .stdio import StdioTransport

__all__ = [
    "Transport",
    "TransportError",
    "ConnectionError",
    "MessageError",
    "OversizedLine",
    "StdioTransport",
]
