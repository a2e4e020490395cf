"""Protocol handler for MCP message processing."""

from typing import Any, Callable, Dict, List, Optional, Union
import structlog
from prometheus_client import Counter, Histogram
from pydantic import BaseModel, Field

from . import codec
from .codec import ParseFailure
from .messages import (
    PROTOCOL_VERSION,
    ErrorCode,
    ImplementationInfo,
    InitializeResult,
    MCPMethods,
    MCPRequest,
    MCPResponse,
    ServerCapabilities,
)
from ..registry.base import FailureKind, RegistryFailure, ResourceRegistry

logger = structlog.get_logger()

# Metrics
request_count = Counter('mcp_requests_total', 'Total MCP requests', ['method', 'status'])
request_duration = Histogram('mcp_request_duration_seconds', 'Request duration', ['method'])
tool_calls = Counter('mcp_tool_calls_total', 'Total tool calls', ['tool', 'status'])

RequestHandler = Callable[[MCPRequest], Optional[MCPResponse]]


class SessionState(BaseModel):
    """Handshake state. ``initialized`` flips once and never reverts."""
    initialized: bool = False
    supported_protocol_versions: List[str] = Field(default_factory=lambda: [PROTOCOL_VERSION])


class ProtocolHandler:
    """Routes parsed requests to the registry and builds response envelopes.

    The handler is synchronous: one request, including any user handler it
    calls, is finished before the next one is looked at.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        server_info: ImplementationInfo,
        supported_protocol_versions: Optional[List[str]] = None,
        capabilities: Optional[ServerCapabilities] = None,
        page_size: Optional[int] = None,
    ):
        self.registry = registry
        self.server_info = server_info
        self.capabilities = capabilities or ServerCapabilities()
        self.page_size = page_size
        self.state = SessionState(
            supported_protocol_versions=list(
                dict.fromkeys(supported_protocol_versions or [PROTOCOL_VERSION])
            )
        )
        self._request_handlers: Dict[str, RequestHandler] = {}

        self._setup_handlers()

    @property
    def initialized(self) -> bool:
        return self.state.initialized

    def _setup_handlers(self) -> None:
        """Setup protocol message handlers."""
        # Lifecycle
        self.register_request_handler(MCPMethods.INITIALIZE, self._handle_initialize)
        self.register_request_handler(MCPMethods.INITIALIZED, self._handle_initialized)
        self.register_request_handler(MCPMethods.PING, self._handle_ping)

        # Tools
        self.register_request_handler(MCPMethods.TOOLS_LIST, self._handle_tools_list)
        self.register_request_handler(MCPMethods.TOOLS_CALL, self._handle_tools_call)

        # Resources
        self.register_request_handler(MCPMethods.RESOURCES_LIST, self._handle_resources_list)
        self.register_request_handler(MCPMethods.RESOURCES_READ, self._handle_resources_read)
        self.register_request_handler(
            MCPMethods.RESOURCES_TEMPLATES_LIST, self._handle_resource_templates_list
        )

    def register_request_handler(self, method: str, handler: RequestHandler) -> None:
        """Register a handler for a method."""
        self._request_handlers[method] = handler
        logger.debug("Registered request handler", method=method)

    def handle_line(self, line: Union[str, bytes]) -> Optional[str]:
        """Process one input line and return the response line, if any."""
        request_id = None
        try:
            parsed = codec.decode(line)
            if isinstance(parsed, ParseFailure):
                logger.warning("Unparseable message", error=parsed.message)
                request_count.labels(method='invalid', status='error').inc()
                response = MCPResponse.failure(parsed.request_id, parsed.code, parsed.message)
            else:
                request_id = parsed.id
                response = self.handle_request(parsed)

            if response is None:
                return None
            return codec.encode(response)

        except Exception as e:
            logger.error("Message processing failed", error=str(e), exc_info=True)
            return codec.encode(MCPResponse.failure(request_id, ErrorCode.INTERNAL_ERROR, str(e)))

    def handle_oversized(self) -> str:
        """Response line for an input line that was dropped for its size."""
        request_count.labels(method='invalid', status='error').inc()
        return codec.encode(
            MCPResponse.failure(None, ErrorCode.INVALID_REQUEST, "Message too large")
        )

    def handle_request(self, request: MCPRequest) -> Optional[MCPResponse]:
        """Dispatch a single request.

        Notifications get no response, except a repeated
        ``notifications/initialized`` which is answered with
        ALREADY_INITIALIZED.
        """
        label = request.method if request.method in self._request_handlers else 'unknown'

        logger.debug("Request received", method=request.method, request_id=request.id)

        with request_duration.labels(method=label).time():
            try:
                response = self._dispatch(request)
            except Exception as e:
                logger.error(
                    "Request handler failed",
                    method=request.method,
                    error=str(e),
                    exc_info=True,
                )
                response = MCPResponse.failure(request.id, ErrorCode.INTERNAL_ERROR, str(e))

        status = 'error' if response is not None and response.error is not None else 'success'
        request_count.labels(method=label, status=status).inc()

        if request.is_notification and request.method != MCPMethods.INITIALIZED:
            return None
        return response

    def _dispatch(self, request: MCPRequest) -> Optional[MCPResponse]:
        if not self.state.initialized and request.method not in MCPMethods.LIFECYCLE:
            return MCPResponse.failure(
                request.id, ErrorCode.NOT_INITIALIZED, "Server not initialized"
            )

        handler = self._request_handlers.get(request.method)
        if handler is None:
            return MCPResponse.failure(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"Unknown method: {request.method}"
            )

        return handler(request)

    def _handle_initialize(self, request: MCPRequest) -> MCPResponse:
        """Handle initialize request. The state flips on notifications/initialized."""
        if self.state.initialized:
            return MCPResponse.failure(
                request.id, ErrorCode.ALREADY_INITIALIZED, "Server already initialized"
            )

        params = request.params or {}
        client_version = params.get("protocolVersion")
        supported = self.state.supported_protocol_versions

        if client_version not in supported:
            logger.warning(
                "Unsupported protocol version",
                requested=client_version,
                supported=supported,
            )
            return MCPResponse.failure(
                request.id,
                ErrorCode.UNSUPPORTED_PROTOCOL_VERSION,
                "Unsupported protocol version",
                {"supported": list(supported), "requested": client_version},
            )

        logger.info(
            "Client initializing",
            protocol_version=client_version,
            client_info=params.get("clientInfo"),
        )

        result = InitializeResult(
            protocolVersion=client_version,
            capabilities=self.capabilities,
            serverInfo=self.server_info,
        )
        return MCPResponse.success(request.id, result.model_dump())

    def _handle_initialized(self, request: MCPRequest) -> Optional[MCPResponse]:
        """Handle initialized notification."""
        if self.state.initialized:
            return MCPResponse.failure(
                request.id, ErrorCode.ALREADY_INITIALIZED, "Server already initialized"
            )

        self.state.initialized = True
        logger.info("Client initialization complete")
        return None

    def _handle_ping(self, request: MCPRequest) -> MCPResponse:
        return MCPResponse.success(request.id, {})

    def _handle_tools_list(self, request: MCPRequest) -> MCPResponse:
        cursor = (request.params or {}).get("cursor")
        result = self.registry.list_tools(cursor=cursor, page_size=self.page_size)
        logger.debug("Tools list requested", tool_count=len(result["tools"]))
        return MCPResponse.success(request.id, result)

    def _handle_tools_call(self, request: MCPRequest) -> MCPResponse:
        params = request.params or {}
        tool_name = params.get("name")
        arguments = params.get("arguments")

        if not isinstance(tool_name, str) or not tool_name:
            return MCPResponse.failure(
                request.id, ErrorCode.INVALID_REQUEST, "Tool name is required"
            )

        logger.info("Tool call requested", tool=tool_name)

        tool_label = tool_name if self.registry.get_tool(tool_name) else 'unknown'
        result = self.registry.call_tool(tool_name, arguments)
        if not result.ok:
            tool_calls.labels(tool=tool_label, status='error').inc()
            return self._failure_response(request, result.failure)

        tool_calls.labels(tool=tool_label, status='success').inc()
        logger.info("Tool call completed", tool=tool_name)
        return MCPResponse.success(request.id, result.value)

    def _handle_resources_list(self, request: MCPRequest) -> MCPResponse:
        cursor = (request.params or {}).get("cursor")
        result = self.registry.list_resources(cursor=cursor, page_size=self.page_size)
        return MCPResponse.success(request.id, result)

    def _handle_resource_templates_list(self, request: MCPRequest) -> MCPResponse:
        cursor = (request.params or {}).get("cursor")
        result = self.registry.list_resource_templates(cursor=cursor, page_size=self.page_size)
        return MCPResponse.success(request.id, result)

    def _handle_resources_read(self, request: MCPRequest) -> MCPResponse:
        uri = (request.params or {}).get("uri")
        if not isinstance(uri, str):
            return MCPResponse.failure(
                request.id, ErrorCode.INVALID_REQUEST, "Resource not found", {"uri": uri}
            )

        result = self.registry.read_resource(uri)
        if not result.ok:
            return self._failure_response(request, result.failure)
        return MCPResponse.success(request.id, result.value)

    def _failure_response(self, request: MCPRequest, failure: RegistryFailure) -> MCPResponse:
        """Translate a registry failure into a protocol error."""
        if failure.kind == FailureKind.NOT_FOUND and request.method == MCPMethods.RESOURCES_READ:
            return MCPResponse.failure(
                request.id, ErrorCode.INVALID_REQUEST, "Resource not found", failure.data
            )
        return MCPResponse.failure(
            request.id, ErrorCode.INVALID_REQUEST, failure.message, failure.data
        )

    def describe(self) -> Dict[str, Any]:
        """Summary of the session, for logging."""
        return {
            "server": self.server_info.model_dump(),
            "initialized": self.state.initialized,
            "protocol_versions": self.state.supported_protocol_versions,
        }
