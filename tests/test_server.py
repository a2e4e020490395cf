"""Tests for MCPServer registration helpers and the serve loop."""

import json
import logging

import pytest
import structlog

from mcp_stdio.config import ServerConfig
from mcp_stdio.protocol.messages import PROTOCOL_VERSION, ErrorCode
from mcp_stdio.protocol.server import MCPServer, RegistryError
from mcp_stdio.registry import DescriptorValidationError, FailureKind, ToolBuilder
from mcp_stdio.transport.base import MessageError, OversizedLine

from conftest import MemoryTransport, request


class TestServe:
    """Test the serve loop against an in-memory transport."""

    @pytest.mark.asyncio
    async def test_status_session(self, server):
        transport = MemoryTransport(
            [
                request("initialize", 1, {"protocolVersion": PROTOCOL_VERSION}),
                request("notifications/initialized"),
                request("resources/read", 2, {"uri": "/status"}),
            ]
        )

        await server.serve(transport)

        assert len(transport.sent) == 2
        assert json.loads(transport.sent[0])["result"]["serverInfo"]["name"] == "test_server"
        assert transport.sent[1] == (
            '{"jsonrpc":"2.0","id":2,"result":{"contents":'
            '[{"uri":"/status","mimeType":"text/plain","text":"ok"}]}}'
        )
        assert transport.closed
        assert not server.running

    @pytest.mark.asyncio
    async def test_bad_lines_do_not_stop_the_loop(self, server):
        transport = MemoryTransport(["{oops", "[]", request("ping", 3)])

        await server.serve(transport)

        codes = [json.loads(line).get("error", {}).get("code") for line in transport.sent]
        assert codes == [ErrorCode.PARSE_ERROR, ErrorCode.INVALID_REQUEST, None]

    @pytest.mark.asyncio
    async def test_stops_when_peer_stops_reading(self, server):
        class ClosedPipe(MemoryTransport):
            async def send_message(self, line):
                raise MessageError("Broken pipe")

        transport = ClosedPipe([request("ping", 1), request("ping", 2)])

        await server.serve(transport)

        assert transport.closed
        assert not server.running

    @pytest.mark.asyncio
    async def test_oversized_line_is_answered(self, server):
        transport = MemoryTransport([OversizedLine(), request("ping", 2)])

        await server.serve(transport)

        assert [json.loads(line) for line in transport.sent] == [
            {
                "jsonrpc": "2.0",
                "id": None,
                "error": {"code": ErrorCode.INVALID_REQUEST, "message": "Message too large"},
            },
            {"jsonrpc": "2.0", "id": 2, "result": {}},
        ]

    @pytest.mark.asyncio
    async def test_eof_without_input(self, server):
        transport = MemoryTransport([])

        await server.serve(transport)

        assert transport.sent == []
        assert not server.initialized


class TestRegistration:
    """Test the decorator and direct registration helpers."""

    def test_decorators_return_the_function(self):
        server = MCPServer(name="s")

        @server.tool("double", input_schema={"type": "object", "properties": {"n": {"type": "integer"}}})
        def double(arguments):
            return str(arguments["n"] * 2)

        @server.resource("/motd", name="motd")
        def motd():
            return "hello"

        @server.resource_template("/items/{id}", name="item")
        def item(variables):
            return variables["id"]

        assert double({"n": 2}) == "4"
        assert server.call_tool("double", n=21) == "42"
        assert server.read_resource("/motd") == "hello"
        assert server.read_resource("/items/9") == "9"

    def test_register_prebuilt_descriptor(self):
        server = MCPServer(name="s")
        server.register(ToolBuilder("noop").handler(lambda arguments: "").build())

        assert [tool["name"] for tool in server.list_tools()] == ["noop"]

    def test_invalid_handler_fails_at_registration(self):
        server = MCPServer(name="s")

        with pytest.raises(DescriptorValidationError):
            server.resource("/bad", lambda value: value, name="bad")

        assert server.list_resources() == []

    def test_name_and_version_default_to_config(self):
        server = MCPServer(config=ServerConfig(server_name="configured", server_version="9.9"))

        assert server.name == "configured"
        assert server.version == "9.9"


class TestAccessors:
    """Test the direct-call helpers that bypass JSON-RPC."""

    def test_lists(self, server):
        assert [r["uri"] for r in server.list_resources()] == ["/status"]
        assert [t["uriTemplate"] for t in server.list_resource_templates()] == ["/users/{id}/posts/{post}"]
        assert [t["name"] for t in server.list_tools()] == ["add"]

    def test_call_tool(self, server):
        assert server.call_tool("add", a=1, b=2) == "3"

    def test_read_resource_raises_registry_error(self, server):
        with pytest.raises(RegistryError) as exc_info:
            server.read_resource("/nowhere")

        assert exc_info.value.failure.kind == FailureKind.NOT_FOUND
        assert exc_info.value.failure.data == {"uri": "/nowhere"}

    def test_call_tool_raises_registry_error(self, server):
        with pytest.raises(RegistryError, match="Missing required argument"):
            server.call_tool("add", a=1)

    def test_tool_without_content(self, server):
        server.tool("empty", lambda arguments: {"content": []})

        assert server.call_tool("empty") is None


class TestConfig:
    """Test configuration flowing into the dispatcher."""

    def test_page_size_from_config(self):
        server = MCPServer(name="s", config=ServerConfig(page_size=1))
        server.resource("/a", lambda: "a", name="a")
        server.resource("/b", lambda: "b", name="b")

        assert server.protocol_handler.page_size == 1
        assert len(server.registry.list_resources(page_size=server.protocol_handler.page_size)["resources"]) == 1

    def test_apply_config(self, server):
        server.apply_config(ServerConfig(page_size=3, protocol_versions=["2025-03-26", "2025-03-26"]))

        assert server.protocol_handler.page_size == 3
        assert server.protocol_handler.state.supported_protocol_versions == ["2025-03-26"]
        assert server.name == "test_server"

    def test_metrics_not_started_by_default(self, server, monkeypatch):
        started = []
        monkeypatch.setattr("mcp_stdio.protocol.server.start_http_server", started.append)

        server._start_metrics()

        assert started == []

    def test_metrics_started_once(self, monkeypatch):
        started = []
        monkeypatch.setattr("mcp_stdio.protocol.server.start_http_server", started.append)
        server = MCPServer(name="s", config=ServerConfig(metrics_enabled=True, metrics_port=9999))

        server._start_metrics()
        server._start_metrics()

        assert started == [9999]


class TestLogging:
    """Test what constructing a server does to process-wide logging."""

    @pytest.fixture
    def unconfigured_structlog(self):
        was_configured = structlog.is_configured()
        saved = structlog.get_config()
        structlog.reset_defaults()
        yield
        if was_configured:
            structlog.configure(**saved)
        else:
            structlog.reset_defaults()

    def test_root_handlers_are_left_alone(self, unconfigured_structlog):
        root = logging.getLogger()
        host_handler = logging.NullHandler()
        root.addHandler(host_handler)
        handlers_before = list(root.handlers)

        try:
            MCPServer(name="s")

            assert root.handlers == handlers_before
            assert structlog.is_configured()
        finally:
            root.removeHandler(host_handler)

    def test_logs_go_to_stderr(self, unconfigured_structlog, capsys):
        MCPServer(name="s")

        structlog.get_logger().info("server event", marker="abc")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "server event" in captured.err

    def test_existing_configuration_is_kept(self, unconfigured_structlog):
        structlog.configure(processors=[structlog.processors.JSONRenderer()])
        config_before = structlog.get_config()

        MCPServer(name="s")

        assert structlog.get_config() == config_before
