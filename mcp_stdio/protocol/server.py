"""MCP server implementation."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union
import structlog
from prometheus_client import start_http_server

from .handler import ProtocolHandler
from .messages import ImplementationInfo
from ..config import ServerConfig
from ..logs import use_stderr_logging
from ..registry.base import RegistryResult, ResourceRegistry
from ..registry.descriptors import (
    ResourceBuilder,
    ResourceDescriptor,
    ResourceTemplateBuilder,
    ResourceTemplateDescriptor,
    ToolBuilder,
    ToolDescriptor,
)
from ..transport.base import MessageError, OversizedLine, Transport
from ..transport.stdio import StdioTransport

logger = structlog.get_logger()

Descriptor = Union[ToolDescriptor, ResourceDescriptor, ResourceTemplateDescriptor]


class RegistryError(Exception):
    """Raised by the convenience accessors when the registry reports a failure."""

    def __init__(self, result: RegistryResult):
        super().__init__(result.failure.message)
        self.failure = result.failure


class MCPServer:
    """An MCP server: one registry, one dispatcher, one stdio serve loop.

    Register tools and resources before calling :meth:`serve` or :meth:`run`.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        version: Optional[str] = None,
        config: Optional[ServerConfig] = None,
    ):
        self.config = config or ServerConfig()
        if not structlog.is_configured():
            # structlog's default logger prints to stdout, which is the protocol channel.
            use_stderr_logging(self.config.log_level)

        self.name = name or self.config.server_name
        self.version = version or self.config.server_version
        self.registry = ResourceRegistry()
        self.protocol_handler = ProtocolHandler(
            self.registry,
            server_info=ImplementationInfo(name=self.name, version=self.version),
            supported_protocol_versions=self.config.protocol_versions,
            page_size=self.config.page_size,
        )
        self._running = False
        self._metrics_started = False

    @property
    def initialized(self) -> bool:
        return self.protocol_handler.initialized

    @property
    def running(self) -> bool:
        return self._running

    def apply_config(self, config: ServerConfig) -> None:
        """Swap in a new configuration. Name and version are kept."""
        self.config = config
        self.protocol_handler.page_size = config.page_size
        self.protocol_handler.state.supported_protocol_versions = list(
            dict.fromkeys(config.protocol_versions)
        )

    def register(self, descriptor: Descriptor) -> Descriptor:
        """Register a finalized descriptor of any kind."""
        if isinstance(descriptor, ToolDescriptor):
            return self.registry.register_tool(descriptor)
        if isinstance(descriptor, ResourceTemplateDescriptor):
            return self.registry.register_resource_template(descriptor)
        return self.registry.register_resource(descriptor)

    def tool(
        self,
        name: str,
        handler: Optional[Callable[[Dict[str, Any]], Any]] = None,
        *,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
    ):
        """Register a tool. Without ``handler`` this returns a decorator."""

        def register(func):
            builder = ToolBuilder(name).description(description).handler(func)
            if input_schema is not None:
                builder.input_schema(input_schema)
            self.registry.register_tool(builder.build())
            return func

        if handler is None:
            return register
        return register(handler)

    def resource(
        self,
        uri: str,
        handler: Optional[Callable[[], Any]] = None,
        *,
        name: str,
        mime_type: str = "text/plain",
        description: str = "",
    ):
        """Register a resource. Without ``handler`` this returns a decorator."""

        def register(func):
            descriptor = (
                ResourceBuilder(uri)
                .name(name)
                .mime_type(mime_type)
                .description(description)
                .handler(func)
                .build()
            )
            self.registry.register_resource(descriptor)
            return func

        if handler is None:
            return register
        return register(handler)

    def resource_template(
        self,
        uri_template: str,
        handler: Optional[Callable[[Dict[str, str]], Any]] = None,
        *,
        name: str,
        mime_type: str = "text/plain",
        description: str = "",
    ):
        """Register a resource template. Without ``handler`` this returns a decorator."""

        def register(func):
            descriptor = (
                ResourceTemplateBuilder(uri_template)
                .name(name)
                .mime_type(mime_type)
                .description(description)
                .handler(func)
                .build()
            )
            self.registry.register_resource_template(descriptor)
            return func

        if handler is None:
            return register
        return register(handler)

    def handle_line(self, line: Union[str, bytes]) -> Optional[str]:
        """Process one request line; returns the response line or None."""
        return self.protocol_handler.handle_line(line)

    async def serve(self, transport: Transport) -> None:
        """Serve requests from ``transport`` until it reaches EOF."""
        self._start_metrics()

        await transport.connect()
        self._running = True
        logger.info("MCP server started", **self.protocol_handler.describe())

        try:
            async for line in transport.receive_messages():
                if isinstance(line, OversizedLine):
                    response = self.protocol_handler.handle_oversized()
                else:
                    response = self.handle_line(line)
                if response is None:
                    continue
                try:
                    await transport.send_message(response)
                except MessageError as e:
                    logger.warning("Peer stopped reading, shutting down", error=str(e))
                    break
        finally:
            self._running = False
            await transport.disconnect()
            logger.info("MCP server stopped")

    def run(self) -> None:
        """Serve on this process's stdin/stdout. Blocks until stdin closes."""
        transport = StdioTransport({"max_line_bytes": self.config.max_line_bytes})
        try:
            asyncio.run(self.serve(transport))
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")

    def _start_metrics(self) -> None:
        if self._metrics_started:
            return
        if self.config.metrics_enabled and self.config.metrics_port:
            start_http_server(self.config.metrics_port)
            self._metrics_started = True
            logger.info("Metrics server started", port=self.config.metrics_port)

    # Convenience accessors that unwrap registry results.

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.registry.list_tools()["tools"]

    def call_tool(self, name: str, **arguments: Any) -> Optional[str]:
        """Call a tool directly and return the text of its first content item."""
        result = self.registry.call_tool(name, arguments)
        if not result.ok:
            raise RegistryError(result)
        content = result.value.get("content") or []
        if not content:
            return None
        return content[0].get("text")

    def list_resources(self) -> List[Dict[str, Any]]:
        return self.registry.list_resources()["resources"]

    def list_resource_templates(self) -> List[Dict[str, Any]]:
        return self.registry.list_resource_templates()["resourceTemplates"]

    def read_resource(self, uri: str) -> str:
        """Read a resource directly and return the text of its first content item."""
        result = self.registry.read_resource(uri)
        if not result.ok:
            raise RegistryError(result)
        return result.value["contents"][0]["text"]
