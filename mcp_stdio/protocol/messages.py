"""MCP message types and JSON-RPC 2.0 protocol definitions."""

from enum import IntEnum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

JSON_RPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603
    # MCP lifecycle error codes
    UNSUPPORTED_PROTOCOL_VERSION = -32000
    NOT_INITIALIZED = -32002
    ALREADY_INITIALIZED = -32003


class MCPError(BaseModel):
    """JSON-RPC 2.0 error object."""
    code: int
    message: str
    data: Optional[Dict[str, Any]] = None


class MCPMessage(BaseModel):
    """Base MCP message."""
    jsonrpc: str = Field(default=JSON_RPC_VERSION, pattern=r"^2\.0$")


class MCPRequest(MCPMessage):
    """JSON-RPC 2.0 request message.

    A request without an ``id`` key is a notification; ``"id": null`` is
    still a request and gets a response.
    """
    id: Optional[Union[str, int]] = None
    method: str
    params: Optional[Dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class MCPResponse(MCPMessage):
    """JSON-RPC 2.0 response message."""
    id: Optional[Union[str, int]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[MCPError] = None

    def model_post_init(self, __context: Any) -> None:
        """Validate that either result or error is present, but not both."""
        if self.result is None and self.error is None:
            raise ValueError("Either 'result' or 'error' must be present")
        if self.result is not None and self.error is not None:
            raise ValueError("Both 'result' and 'error' cannot be present")

    @classmethod
    def success(cls, request_id: Optional[Union[str, int]], result: Dict[str, Any]) -> "MCPResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: Optional[Union[str, int]],
        code: int,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> "MCPResponse":
        return cls(id=request_id, error=MCPError(code=code, message=message, data=data))

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the envelope shape sent on the wire.

        ``id`` is always present (``null`` when unknown), ``error.data`` only
        when set.
        """
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result
        return payload


# MCP-specific method names
class MCPMethods:
    """Standard MCP method names."""
    # Server lifecycle
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"

    # Tools
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    # Resources
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    RESOURCES_TEMPLATES_LIST = "resources/templates/list"

    # Allowed before the handshake completes
    LIFECYCLE = frozenset({INITIALIZE, INITIALIZED, PING})


# Standard MCP schemas
class ToolDefinition(BaseModel):
    """Tool definition schema."""
    name: str
    description: str
    inputSchema: Dict[str, Any]


class ResourceDefinition(BaseModel):
    """Resource definition schema."""
    uri: str
    name: str
    description: str = ""
    mimeType: str


class ResourceTemplateDefinition(BaseModel):
    """Resource template definition schema."""
    uriTemplate: str
    name: str
    description: str = ""
    mimeType: str


class ServerCapabilities(BaseModel):
    """Server capabilities schema."""
    logging: Dict[str, Any] = Field(default_factory=dict)
    prompts: Dict[str, Any] = Field(default_factory=lambda: {"listChanged": False})
    resources: Dict[str, Any] = Field(
        default_factory=lambda: {"subscribe": False, "listChanged": False}
    )
    tools: Dict[str, Any] = Field(default_factory=lambda: {"listChanged": False})


class ImplementationInfo(BaseModel):
    """Name and version of a client or server."""
    name: str
    version: str


class InitializeParams(BaseModel):
    """Initialize request parameters."""
    protocolVersion: Optional[str] = None
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    clientInfo: Optional[ImplementationInfo] = None


class InitializeResult(BaseModel):
    """Initialize response result."""
    protocolVersion: str
    capabilities: ServerCapabilities
    serverInfo: ImplementationInfo


class ToolCallResult(BaseModel):
    """Tool call response result."""
    content: List[Dict[str, Any]]
    isError: bool = False


class ResourceContents(BaseModel):
    """One entry of a resources/read result."""
    uri: str
    mimeType: str
    text: str


class ReadResourceResult(BaseModel):
    """resources/read response result."""
    contents: List[ResourceContents]
