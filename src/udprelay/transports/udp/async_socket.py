"""Asynchronous UDP socket implementation."""

import asyncio
import logging
import socket
from typing import Optional, Tuple

from udprelay.config.settings import MAX_DATAGRAM_SIZE
from udprelay.errors import PacketBoundaryError, TransportError

logger = logging.getLogger(__name__)


class AsyncUDPSocket:
    """
    Asynchronous UDP socket driven by the running event loop.

    Binding is synchronous so a socket can be created while a registry lock
    is held; sends and receives suspend on the loop.
    """

    def __init__(
        self, host: str = "0.0.0.0", port: int = 0, family: int = socket.AF_INET
    ):
        """
        Initialize async UDP socket.

        Args:
            host: Bind hostname or IP
            port: Bind port (0 for automatic assignment)
            family: Address family, AF_INET or AF_INET6
        """
        self.host = host
        self.port = port
        self.family = family
        self.socket: Optional[socket.socket] = None

    def bind(self) -> None:
        """
        Bind socket to address.

        Raises:
            TransportError: If the address cannot be bound
        """
        sock = socket.socket(self.family, socket.SOCK_DGRAM)
        try:
            sock.setblocking(False)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise TransportError(f"Cannot bind {self.host}:{self.port}: {e}") from e
        self.socket = sock
        # Update port if it was auto-assigned
        if self.port == 0:
            self.port = sock.getsockname()[1]
        logger.debug("Bound UDP socket on %s:%d", self.host, self.port)

    @property
    def local_address(self) -> Tuple:
        if not self.socket:
            raise ConnectionError("Socket not bound")
        return self.socket.getsockname()

    async def send_to(self, data: bytes, address: Tuple) -> int:
        """
        Send one datagram to a specific address.

        Args:
            data: Bytes to send
            address: Target address tuple (host, port)

        Returns:
            Number of bytes written

        Raises:
            ConnectionError: If not bound
            PacketBoundaryError: If the datagram was not written whole
            TransportError: If the send fails
        """
        if not self.socket:
            raise ConnectionError("Socket not bound")
        loop = asyncio.get_running_loop()
        try:
            written = await loop.sock_sendto(self.socket, data, address)
        except OSError as e:
            raise TransportError(f"Send to {address} failed: {e}") from e
        if written != len(data):
            raise PacketBoundaryError(len(data), written)
        return written

    async def receive_from(
        self, buffer_size: int = MAX_DATAGRAM_SIZE
    ) -> Tuple[bytes, Tuple]:
        """
        Receive one datagram from any sender.

        Args:
            buffer_size: Size of receive buffer, at least 65535

        Returns:
            Tuple of (data, sender_address)

        Raises:
            ConnectionError: If not bound
            ValueError: If buffer_size could truncate a datagram
            TransportError: If the receive fails
        """
        if not self.socket:
            raise ConnectionError("Socket not bound")
        if buffer_size < MAX_DATAGRAM_SIZE:
            raise ValueError(
                f"buffer_size must be at least {MAX_DATAGRAM_SIZE}, got {buffer_size}"
            )
        loop = asyncio.get_running_loop()
        try:
            return await loop.sock_recvfrom(self.socket, buffer_size)
        except OSError as e:
            raise TransportError(f"Receive failed: {e}") from e

    def close(self) -> None:
        """Close socket."""
        if self.socket:
            self.socket.close()
            self.socket = None

    async def __aenter__(self):
        """Async context manager entry."""
        self.bind()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        self.close()
