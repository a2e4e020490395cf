#!/usr/bin/env python3
"""Example MCP server exposing a tool, a resource and a resource template.

Serve it with::

    python main.py --app example_usage:server

or run this file directly.
"""

import json
import platform

from mcp_stdio import MCPServer

server = MCPServer(name="example-server", version="0.1.0")


@server.tool(
    "add",
    description="Add two numbers",
    input_schema={
        "type": "object",
        "properties": {
            "a": {"type": "number"},
            "b": {"type": "number"},
        },
        "required": ["a", "b"],
    },
)
def add(arguments):
    total = arguments["a"] + arguments["b"]
    return {"content": [{"type": "text", "text": str(total)}], "isError": False}


@server.tool("echo", description="Echo a message back")
def echo(arguments):
    return arguments.get("message", "")


@server.resource("/status", name="status", description="Server health")
def status():
    return "ok"


@server.resource(
    "/system", name="system", mime_type="application/json", description="Host information"
)
def system():
    return json.dumps({"python": platform.python_version(), "platform": platform.system()})


@server.resource_template(
    "/greetings/{name}", name="greeting", description="A personal greeting"
)
def greeting(variables):
    return f"Hello, {variables['name']}!"


if __name__ == "__main__":
    server.run()
