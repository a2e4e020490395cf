"""Tests for line framing."""

import json

import pytest

from mcp_stdio.protocol import codec
from mcp_stdio.protocol.codec import ParseFailure, ProtocolError
from mcp_stdio.protocol.messages import ErrorCode, MCPRequest, MCPResponse


class TestDecode:
    """Test request decoding."""

    def test_request(self):
        parsed = codec.decode('{"jsonrpc":"2.0","id":7,"method":"tools/list","params":{"cursor":"5"}}')

        assert isinstance(parsed, MCPRequest)
        assert parsed.id == 7
        assert parsed.method == "tools/list"
        assert parsed.params == {"cursor": "5"}
        assert not parsed.is_notification

    def test_notification_has_no_id(self):
        parsed = codec.decode('{"jsonrpc":"2.0","method":"notifications/initialized"}')

        assert isinstance(parsed, MCPRequest)
        assert parsed.is_notification

    def test_null_id_is_not_a_notification(self):
        parsed = codec.decode('{"jsonrpc":"2.0","id":null,"method":"ping"}')

        assert parsed.id is None
        assert not parsed.is_notification

    def test_bytes_are_accepted(self):
        parsed = codec.decode(b'{"jsonrpc":"2.0","id":"abc","method":"ping"}\n')

        assert isinstance(parsed, MCPRequest)
        assert parsed.id == "abc"

    def test_malformed_json(self):
        parsed = codec.decode('{"jsonrpc": "2.0", "id": 1,')

        assert isinstance(parsed, ParseFailure)
        assert parsed.code == ErrorCode.PARSE_ERROR
        assert parsed.message.startswith("Invalid JSON:")
        assert parsed.request_id is None

    def test_non_object(self):
        parsed = codec.decode("[1, 2, 3]")

        assert isinstance(parsed, ParseFailure)
        assert parsed.code == ErrorCode.INVALID_REQUEST

    def test_missing_method_keeps_id(self):
        parsed = codec.decode('{"jsonrpc":"2.0","id":4}')

        assert isinstance(parsed, ParseFailure)
        assert parsed.code == ErrorCode.INVALID_REQUEST
        assert parsed.request_id == 4

    def test_method_is_case_sensitive(self):
        parsed = codec.decode('{"jsonrpc":"2.0","id":1,"Method":"ping"}')

        assert isinstance(parsed, ParseFailure)


class TestEncode:
    """Test response encoding."""

    def test_success(self):
        line = codec.encode(MCPResponse.success(3, {"tools": []}))

        assert line == '{"jsonrpc":"2.0","id":3,"result":{"tools":[]}}'

    def test_error_without_data_omits_data(self):
        line = codec.encode(MCPResponse.failure(3, ErrorCode.METHOD_NOT_FOUND, "Unknown method: x"))

        assert json.loads(line) == {
            "jsonrpc": "2.0",
            "id": 3,
            "error": {"code": -32601, "message": "Unknown method: x"},
        }

    def test_error_with_data(self):
        line = codec.encode(
            MCPResponse.failure(None, ErrorCode.INVALID_REQUEST, "Resource not found", {"uri": "/x"})
        )

        payload = json.loads(line)
        assert payload["id"] is None
        assert payload["error"]["data"] == {"uri": "/x"}

    def test_single_line(self):
        line = codec.encode(MCPResponse.success(1, {"text": "a\nb"}))

        assert "\n" not in line

    def test_request_and_notification(self):
        assert json.loads(codec.encode_request(2, "ping")) == {"jsonrpc": "2.0", "id": 2, "method": "ping"}
        assert json.loads(codec.encode_notification("notifications/initialized")) == {
            "jsonrpc": "2.0",
            "method": "notifications/initialized",
        }


class TestDecodeResponse:
    """Test client-side response decoding."""

    def test_result(self):
        response = codec.decode_response(b'{"jsonrpc":"2.0","id":2,"result":{}}\n')

        assert response.id == 2
        assert response.result == {}

    def test_error(self):
        response = codec.decode_response(
            '{"jsonrpc":"2.0","id":2,"error":{"code":-32601,"message":"nope"}}'
        )

        assert response.error.code == -32601

    def test_garbage_raises(self):
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            codec.decode_response("not json")

    def test_neither_result_nor_error_raises(self):
        with pytest.raises(ProtocolError):
            codec.decode_response('{"jsonrpc":"2.0","id":2}')
