"""Shared fixtures for the MCP stdio tests."""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest

from mcp_stdio.protocol.messages import PROTOCOL_VERSION
from mcp_stdio.protocol.server import MCPServer
from mcp_stdio.transport.base import Transport


class MemoryTransport(Transport):
    """Transport fed from a list of lines; records what the server sends."""

    def __init__(self, lines: List[str]):
        super().__init__()
        self._incoming = list(lines)
        self.sent: List[str] = []

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False
        self._closed = True

    async def send_message(self, line: str) -> None:
        self.sent.append(line)

    async def receive_messages(self) -> AsyncIterator[str]:
        for line in self._incoming:
            yield line


def request(method: str, request_id: Optional[int] = None, params: Optional[Dict[str, Any]] = None) -> str:
    message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def send(server: MCPServer, method: str, request_id: Optional[int] = None, params=None):
    """Feed one request to the server and decode the response line, if any."""
    line = server.handle_line(request(method, request_id, params))
    return json.loads(line) if line is not None else None


def handshake(server: MCPServer) -> Dict[str, Any]:
    response = send(server, "initialize", 1, {"protocolVersion": PROTOCOL_VERSION, "capabilities": {}})
    assert send(server, "notifications/initialized") is None
    return response


@pytest.fixture
def server():
    """Server with one of each descriptor kind."""
    server = MCPServer(name="test_server", version="1.2.3")
    server.resource("/status", lambda: "ok", name="status", description="Health")
    server.resource_template(
        "/users/{id}/posts/{post}",
        lambda v: f"post {v['post']} of {v['id']}",
        name="post",
        mime_type="text/markdown",
    )
    server.tool(
        "add",
        lambda args: {"content": [{"type": "text", "text": str(args["a"] + args["b"])}], "isError": False},
        description="Add two numbers",
        input_schema={
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    )
    return server


@pytest.fixture
def initialized_server(server):
    handshake(server)
    return server
