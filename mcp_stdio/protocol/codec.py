"""Newline-delimited JSON-RPC 2.0 framing."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
import structlog
from pydantic import ValidationError

from .messages import (
    JSON_RPC_VERSION,
    ErrorCode,
    MCPRequest,
    MCPResponse,
)
from ..transport.base import MessageError

logger = structlog.get_logger()


class ProtocolError(MessageError):
    """Raised when a peer sends a line that is not a valid JSON-RPC message."""
    pass


@dataclass(frozen=True)
class ParseFailure:
    """A line that could not be turned into a request.

    ``request_id`` is kept when the line was valid JSON carrying an id, so the
    error response can echo it.
    """
    code: ErrorCode
    message: str
    request_id: Optional[Union[str, int]] = None


def decode(line: Union[str, bytes]) -> Union[MCPRequest, ParseFailure]:
    """Parse one line into a request. Never raises."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            return ParseFailure(ErrorCode.PARSE_ERROR, f"Invalid JSON: {e}")

    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        return ParseFailure(ErrorCode.PARSE_ERROR, f"Invalid JSON: {e}")

    if not isinstance(raw, dict):
        return ParseFailure(ErrorCode.INVALID_REQUEST, "Message must be a JSON object")

    request_id = raw.get("id")
    if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
        request_id = None

    if not isinstance(raw.get("method"), str):
        return ParseFailure(ErrorCode.INVALID_REQUEST, "Missing method", request_id)

    try:
        return MCPRequest.model_validate(raw)
    except ValidationError as e:
        logger.debug("Request validation failed", errors=e.errors())
        return ParseFailure(ErrorCode.INVALID_REQUEST, f"Invalid request: {e}", request_id)


def encode(response: MCPResponse) -> str:
    """Serialize a response envelope to a single line (without newline)."""
    return json.dumps(response.to_wire(), ensure_ascii=False, separators=(",", ":"))


def encode_request(
    request_id: Union[str, int], method: str, params: Optional[Dict[str, Any]] = None
) -> str:
    message: Dict[str, Any] = {"jsonrpc": JSON_RPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))


def encode_notification(method: str, params: Optional[Dict[str, Any]] = None) -> str:
    message: Dict[str, Any] = {"jsonrpc": JSON_RPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))


def decode_response(line: Union[str, bytes]) -> MCPResponse:
    """Parse one response line received by a client.

    Raises ProtocolError, since a client has no peer to report a bad line to.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON from server: {e}") from e

    if not isinstance(raw, dict):
        raise ProtocolError("Server message must be a JSON object")

    try:
        return MCPResponse.model_validate(raw)
    except (ValidationError, ValueError) as e:
        raise ProtocolError(f"Invalid response from server: {e}") from e
