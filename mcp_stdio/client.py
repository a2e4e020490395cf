"""Synchronous MCP client that drives a server running as a child process.

One request is in flight at a time: every call writes one line to the
child's stdin and blocks until the matching line comes back on its stdout.
There is no timeout and no reconnection; callers that need either must
impose them from outside.
"""

import collections
import os
import subprocess
import threading
from typing import Any, Deque, Dict, List, Optional, Sequence
import structlog

from .config import ClientConfig
from .protocol import codec
from .protocol.codec import ProtocolError
from .protocol.messages import ImplementationInfo, InitializeParams, MCPMethods
from .transport.base import ConnectionError, MessageError, TransportError

logger = structlog.get_logger()


class RPCError(MessageError):
    """JSON-RPC error returned by the server."""

    def __init__(self, code: int, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(f"RPC Error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class MCPClient:
    """Spawns an MCP server process and talks to it over its standard streams."""

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        name: Optional[str] = None,
        version: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        config: Optional[ClientConfig] = None,
    ):
        self.config = config or ClientConfig()
        self.command = command
        self.args: List[str] = list(args)
        self.name = name or self.config.client_name
        self.version = version or self.config.client_version
        self.env = env

        self.server_info: Optional[Dict[str, Any]] = None
        self.server_capabilities: Dict[str, Any] = {}
        self.protocol_version: Optional[str] = None

        self._process: Optional[subprocess.Popen] = None
        self._stderr_thread: Optional[threading.Thread] = None
        self._stderr_tail: Deque[str] = collections.deque(maxlen=self.config.stderr_tail_lines)
        self._request_id = 0

    @property
    def process(self) -> Optional[int]:
        """PID of the child process, if one has been spawned."""
        return self._process.pid if self._process is not None else None

    @property
    def stdin(self):
        return self._process.stdin if self._process is not None else None

    @property
    def stdout(self):
        return self._process.stdout if self._process is not None else None

    @property
    def stderr(self):
        return self._process.stderr if self._process is not None else None

    @property
    def running(self) -> bool:
        """True while a child exists and has not been seen to exit."""
        return self._process is not None and self._process.poll() is None

    @property
    def stderr_tail(self) -> List[str]:
        """Most recent lines the child wrote to stderr, for diagnostics."""
        return list(self._stderr_tail)

    def connect(self) -> "MCPClient":
        """Spawn the server and perform the initialize handshake."""
        if self.running:
            return self

        process_env = None
        if self.env:
            process_env = os.environ.copy()
            process_env.update(self.env)

        try:
            self._process = subprocess.Popen(
                [self.command, *self.args],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=process_env,
            )
        except OSError as e:
            logger.error("Failed to start server process", command=self.command, error=str(e))
            raise ConnectionError(f"Failed to start process: {e}") from e

        logger.info("Server process started", command=self.command, pid=self.process)
        self._request_id = 0
        self._start_stderr_reader()

        try:
            self._initialize()
        except Exception:
            self.close()
            raise
        return self

    def _initialize(self) -> None:
        params = InitializeParams(
            protocolVersion=self.config.protocol_version,
            capabilities={},
            clientInfo=ImplementationInfo(name=self.name, version=self.version),
        )
        result = self._request(MCPMethods.INITIALIZE, params.model_dump(exclude_none=True))

        self.protocol_version = result.get("protocolVersion")
        self.server_capabilities = result.get("capabilities") or {}
        self.server_info = result.get("serverInfo")

        self._write_line(codec.encode_notification(MCPMethods.INITIALIZED))
        logger.info("Connected to server", server_info=self.server_info)

    def ping(self) -> Dict[str, Any]:
        return self._request(MCPMethods.PING)

    def list_tools(self, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self._request(MCPMethods.TOOLS_LIST, self._cursor_params(cursor))

    def call_tool(self, name: str, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request(MCPMethods.TOOLS_CALL, {"name": name, "arguments": args or {}})

    def list_resources(self, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self._request(MCPMethods.RESOURCES_LIST, self._cursor_params(cursor))

    def list_resource_templates(self, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self._request(MCPMethods.RESOURCES_TEMPLATES_LIST, self._cursor_params(cursor))

    def read_resource(self, uri: str) -> Dict[str, Any]:
        return self._request(MCPMethods.RESOURCES_READ, {"uri": uri})

    def close(self) -> None:
        """Terminate the child and release its pipes. No-op when not running."""
        process = self._process
        if process is None:
            return

        self._process = None
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=self.config.terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Server process did not terminate, killing it", pid=process.pid)
                process.kill()
                process.wait()

        if self._stderr_thread is not None:
            self._stderr_thread.join(timeout=1.0)
            self._stderr_thread = None

        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                logger.debug("Error closing server pipe", error=str(e))

        logger.info("Server process stopped", pid=process.pid, returncode=process.returncode)

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    @staticmethod
    def _cursor_params(cursor: Optional[str]) -> Optional[Dict[str, Any]]:
        return {"cursor": cursor} if cursor is not None else None

    def _request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one request and block for its response."""
        if not self.running:
            raise TransportError("Server process not running")

        request_id = self._next_request_id()
        self._write_line(codec.encode_request(request_id, method, params))
        logger.debug("Request sent", method=method, request_id=request_id)

        line = self._process.stdout.readline()
        if not line:
            raise TransportError(
                f"Server process closed its output while waiting for {method} response"
            )

        response = codec.decode_response(line)
        if response.id != request_id:
            raise ProtocolError(
                f"Response id mismatch: expected {request_id}, got {response.id!r}"
            )

        if response.error is not None:
            raise RPCError(response.error.code, response.error.message, response.error.data)

        return response.result

    def _write_line(self, line: str) -> None:
        if not self.running:
            raise TransportError("Server process not running")
        try:
            self._process.stdin.write((line + "\n").encode("utf-8"))
            self._process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as e:
            raise TransportError(f"Failed to write to server process: {e}") from e

    def _start_stderr_reader(self) -> None:
        stderr = self._process.stderr
        if stderr is None:
            return

        def drain() -> None:
            try:
                for raw in iter(stderr.readline, b""):
                    text = raw.decode("utf-8", errors="replace").rstrip("\n")
                    self._stderr_tail.append(text)
                    logger.debug("Server stderr", line=text)
            except (OSError, ValueError):
                # Stream closed by close()
                return

        self._stderr_thread = threading.Thread(
            target=drain, name=f"mcp-stderr-{self._process.pid}", daemon=True
        )
        self._stderr_thread.start()

    def __enter__(self) -> "MCPClient":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
