"""JSON-RPC 2.0 messages and line codec for MCP."""

from .codec import ParseFailure, ProtocolError, decode, encode
from .messages import (
    JSON_RPC_VERSION,
    PROTOCOL_VERSION,
    MCPMessage,
    MCPRequest,
    MCPResponse,
    MCPError,
    MCPMethods,
    ErrorCode,
)

__all__ = [
    "JSON_RPC_VERSION",
    "PROTOCOL_VERSION",
    "MCPMessage",
    "MCPRequest",
    "MCPResponse",
    "MCPError",
    "MCPMethods",
    "ErrorCode",
    "ParseFailure",
    "ProtocolError",
    "decode",
    "encode",
]
