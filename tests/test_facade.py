"""Tests for the process-wide server helpers."""

import pytest

from mcp_stdio import facade


@pytest.fixture(autouse=True)
def reset_server():
    facade.shutdown_server()
    yield
    facade.shutdown_server()


class TestFacade:
    def test_get_server_before_initialize(self):
        with pytest.raises(RuntimeError, match="initialize_server"):
            facade.get_server()

    def test_initialize_is_idempotent(self):
        first = facade.initialize_server("one")
        second = facade.initialize_server("two")

        assert first is second
        assert first.name == "one"

    def test_decorators_register_on_the_shared_server(self):
        facade.initialize_server("shared")

        @facade.tool("shout")
        def shout(arguments):
            return arguments.get("text", "").upper()

        @facade.resource("/motd", name="motd")
        def motd():
            return "hello"

        @facade.resource_template("/echo/{word}", name="echo")
        def echo(variables):
            return variables["word"]

        server = facade.get_server()
        assert server.call_tool("shout", text="hi") == "HI"
        assert server.read_resource("/motd") == "hello"
        assert server.read_resource("/echo/abc") == "abc"

    def test_shutdown_forgets_the_server(self):
        first = facade.initialize_server("one")
        facade.shutdown_server()

        assert facade.initialize_server("two") is not first

    def test_shutdown_refuses_while_running(self):
        server = facade.initialize_server("busy")
        server._running = True

        try:
            with pytest.raises(RuntimeError):
                facade.shutdown_server()
        finally:
            server._running = False
