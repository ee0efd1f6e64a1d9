"""UDP transport."""

from udprelay.transports.udp.async_socket import AsyncUDPSocket

__all__ = ["AsyncUDPSocket"]
