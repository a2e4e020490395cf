"""End-to-end tests: the client drives example_usage.py in a real child process."""

import json
import sys
from pathlib import Path

import pytest

from mcp_stdio.client import MCPClient, RPCError
from mcp_stdio.protocol.messages import ErrorCode

EXAMPLE_SERVER = str(Path(__file__).resolve().parent.parent / "example_usage.py")


@pytest.fixture
def client():
    client = MCPClient(sys.executable, [EXAMPLE_SERVER], name="integration-test")
    client.connect()
    yield client
    client.close()


class TestRoundTrip:
    """Real stdio round trips."""

    def test_handshake(self, client):
        assert client.server_info == {"name": "example-server", "version": "0.1.0"}
        assert client.running

    def test_read_status(self, client):
        result = client.read_resource("/status")

        assert result == {"contents": [{"uri": "/status", "mimeType": "text/plain", "text": "ok"}]}

    def test_read_json_resource(self, client):
        result = client.read_resource("/system")

        content = result["contents"][0]
        assert content["mimeType"] == "application/json"
        assert "python" in json.loads(content["text"])

    def test_template(self, client):
        result = client.read_resource("/greetings/world")

        assert result["contents"][0]["text"] == "Hello, world!"

    def test_tools(self, client):
        names = [tool["name"] for tool in client.list_tools()["tools"]]

        assert names == ["add", "echo"]
        assert client.call_tool("add", {"a": 1, "b": 2})["content"][0]["text"] == "3"
        assert client.call_tool("echo", {"message": "hi"})["content"][0]["text"] == "hi"

    def test_errors_keep_the_session_alive(self, client):
        with pytest.raises(RPCError) as exc_info:
            client.read_resource("/greetings")

        assert exc_info.value.code == ErrorCode.INVALID_REQUEST
        assert client.ping() == {}

    def test_close_stops_the_process(self):
        client = MCPClient(sys.executable, [EXAMPLE_SERVER])
        client.connect()

        client.close()

        assert not client.running
        assert client.process is None

    def test_paginated_listing(self):
        client = MCPClient(sys.executable, [EXAMPLE_SERVER], env={"MCP_PAGE_SIZE": "1"})

        with client:
            first = client.list_resources()
            second = client.list_resources(cursor=first["nextCursor"])

        assert [r["uri"] for r in first["resources"]] == ["/status"]
        assert [r["uri"] for r in second["resources"]] == ["/system"]
        assert "nextCursor" not in second
