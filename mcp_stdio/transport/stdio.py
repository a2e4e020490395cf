"""Standard I/O transport implementation for MCP."""

import asyncio
import sys
from typing import Any, AsyncIterator, Dict, Optional, TextIO
import structlog

from .base import ConnectionError, MessageError, OversizedLine, Transport

logger = structlog.get_logger()


class StdioTransport(Transport):
    """Standard I/O transport for the server side of an MCP pipe."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        super().__init__(config)
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stdin_reader: Optional[asyncio.StreamReader] = None
        self._stdout_writer: Optional[asyncio.StreamWriter] = None

    async def connect(self) -> None:
        """Initialize stdio streams."""
        if self._connected:
            return

        try:
            # Create async streams for stdin/stdout
            self._stdin_reader = asyncio.StreamReader(
                limit=self.config.get("max_line_bytes", 16 * 1024 * 1024)
            )
            protocol = asyncio.StreamReaderProtocol(self._stdin_reader)

            # Connect to stdin
            loop = asyncio.get_running_loop()
            await loop.connect_read_pipe(lambda: protocol, self._stdin)

            # Create stdout writer
            transport, protocol = await loop.connect_write_pipe(
                asyncio.streams.FlowControlMixin, self._stdout
            )
            self._stdout_writer = asyncio.StreamWriter(transport, protocol, None, loop)

            self._connected = True
            self._closed = False

            logger.info("Stdio transport initialized")

        except Exception as e:
            logger.error("Failed to initialize stdio transport", error=str(e))
            raise ConnectionError(f"Failed to initialize stdio: {e}")

    async def disconnect(self) -> None:
        """Close stdio transport."""
        if not self._connected:
            return

        self._connected = False
        self._closed = True

        if self._stdout_writer:
            # FlowControlMixin has no close waiter; the pipe is released on the next loop pass.
            self._stdout_writer.close()
            self._stdout_writer = None
            await asyncio.sleep(0)

        logger.info("Stdio transport closed")

    async def send_message(self, line: str) -> None:
        """Write one line to stdout and flush it."""
        if not self._connected or not self._stdout_writer:
            raise ConnectionError("Not connected")

        try:
            payload = line + "\n"
            self._stdout_writer.write(payload.encode("utf-8"))
            await self._stdout_writer.drain()

            logger.debug("Message sent", size=len(payload))

        except (BrokenPipeError, ConnectionResetError) as e:
            logger.error("Failed to send message", error=str(e))
            raise MessageError(f"Failed to send message: {e}")

    async def receive_messages(self) -> AsyncIterator[str]:
        """Yield lines from stdin until EOF.

        A line longer than ``max_line_bytes`` is dropped and reported once as
        an :class:`OversizedLine`; reading continues with the next line.
        """
        if not self._connected or not self._stdin_reader:
            raise ConnectionError("Not connected")

        # True while the tail of a dropped line is still to be skipped
        skipping = False
        while not self._closed:
            try:
                line = await self._stdin_reader.readline()
            except ValueError as e:
                if not skipping:
                    logger.warning("Incoming line too long, dropped", error=str(e))
                    yield OversizedLine()
                # Without a separator only the buffered part was discarded
                skipping = "not found" in str(e)
                continue
            if not line:
                break
            if skipping:
                skipping = False
                continue

            text = line.decode("utf-8", errors="replace").strip()
            if not text:
                continue

            logger.debug("Message received", size=len(line))
            yield text
