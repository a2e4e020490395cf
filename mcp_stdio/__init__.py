"""MCP over stdio: a JSON-RPC server dispatcher and a subprocess client."""

__version__ = "0.1.0"

from .client import MCPClient, RPCError
from .protocol.codec import ProtocolError
from .protocol.messages import PROTOCOL_VERSION, ErrorCode, MCPMethods
from .protocol.server import MCPServer, RegistryError
from .registry import (
    DescriptorValidationError,
    ResourceBuilder,
    ResourceRegistry,
    ResourceTemplateBuilder,
    ToolBuilder,
)
from .transport.base import TransportError

__all__ = [
    "__version__",
    "MCPServer",
    "MCPClient",
    "ResourceRegistry",
    "ToolBuilder",
    "ResourceBuilder",
    "ResourceTemplateBuilder",
    "DescriptorValidationError",
    "RegistryError",
    "RPCError",
    "ProtocolError",
    "TransportError",
    "ErrorCode",
    "MCPMethods",
    "PROTOCOL_VERSION",
]
