"""Line transport contract shared by the serve loop and its transports."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional


class TransportError(Exception):
    pass


class ConnectionError(TransportError):
    """The transport could not be opened, or was used while closed."""
    pass


class MessageError(TransportError):
    """A line could not be written to, or read from, the peer."""
    pass


class OversizedLine(str):
    """Yielded in place of an incoming line that exceeded the size limit."""
    pass


class Transport(ABC):
    """Moves newline-framed lines; it never looks inside them.

    ``receive_messages`` may yield an :class:`OversizedLine` for a line it had
    to drop, so the caller can answer it.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._connected = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    async def send_message(self, line: str) -> None:
        """Write ``line`` followed by a newline."""

    @abstractmethod
    def receive_messages(self) -> AsyncIterator[str]:
        """Yield incoming lines without their newline until EOF."""
