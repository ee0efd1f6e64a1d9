"""
Relay engine.

Two loops run for the life of the process: one turns input lines into
datagrams, the other turns datagrams into output lines. In multiplexed
send role the second loop is replaced by one listener per session socket.
The first loop to fail stops everything.
"""

import asyncio
import logging
import socket
from typing import Optional, Tuple

from udprelay.config.settings import RelayConfig, Role
from udprelay.errors import ConfigError, UnknownSessionError
from udprelay.peers.lock import PeerLock
from udprelay.peers.registry import SessionRegistry, SessionSockets
from udprelay.protocols.codec import (
    decode_frame,
    decode_tokens,
    encode_frame,
    encode_payload,
)
from udprelay.transports.stdio import FileLineWriter, LineWriter
from udprelay.transports.udp.async_socket import AsyncUDPSocket

logger = logging.getLogger(__name__)


async def resolve_address(host: str, port: int) -> Tuple[int, Tuple]:
    """
    Resolve a target to a datagram socket address.

    Returns:
        Tuple of (address_family, sockaddr)

    Raises:
        ConfigError: If the host cannot be resolved
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ConfigError(f"Cannot resolve target {host}:{port}: {e}") from e
    if not infos:
        raise ConfigError(f"Cannot resolve target {host}:{port}")
    family, _, _, _, sockaddr = infos[0]
    return family, sockaddr


def _default_host(family: int) -> str:
    return "::" if family == socket.AF_INET6 else "0.0.0.0"


class Relay:
    """
    Bidirectional UDP relay driven by a line protocol.

    Args:
        config: Role, mode and bind settings
        reader: Object with ``async readline() -> str``
        writer: Output line sink
        target: Resolved target sockaddr (send role)
        family: Address family of ``target``
    """

    def __init__(
        self,
        config: RelayConfig,
        reader,
        writer: Optional[LineWriter] = None,
        target: Optional[Tuple] = None,
        family: Optional[int] = None,
    ):
        if config.role is Role.SEND and target is None:
            raise ConfigError("send role requires a resolved target")
        self.config = config
        self.reader = reader
        self.writer = writer if writer is not None else FileLineWriter()
        self.target = target
        self.family = family if family is not None else socket.AF_INET
        if config.host is not None and ":" in config.host:
            self.family = socket.AF_INET6
        self.host = config.host or _default_host(self.family)

        self.socket: Optional[AsyncUDPSocket] = None
        self.registry: Optional[SessionRegistry] = None
        self.sessions: Optional[SessionSockets] = None
        self.peer: Optional[PeerLock] = None
        self._outbox: Optional[asyncio.Queue] = None

    def bind(self) -> None:
        """Open the relay's own socket; multiplexed send role has none."""
        if self.socket is not None:
            return
        if self.config.multiplexed and self.config.role is Role.SEND:
            return
        port = self.config.port if self.config.role is Role.LISTEN else 0
        self.socket = AsyncUDPSocket(self.host, port, self.family)
        self.socket.bind()

    async def run(self) -> None:
        """
        Relay until a loop fails.

        The first failure is re-raised after every loop has been cancelled.
        When the controlling process closes input that failure is
        :class:`InputClosed`.
        """
        self.bind()
        self._log_start()
        try:
            async with asyncio.TaskGroup() as tasks:
                if self.config.multiplexed:
                    self._start_multiplexed(tasks)
                else:
                    self._start_single(tasks)
        except ExceptionGroup as group:
            raise group.exceptions[0]
        finally:
            self.close()

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
        if self.sessions is not None:
            self.sessions.close()

    def _log_start(self) -> None:
        mode = self.config.mode.value
        if self.socket is not None and self.config.role is Role.LISTEN:
            logger.info("Listening on %s:%d (%s)", self.host, self.socket.port, mode)
        else:
            logger.info("Sending to %s (%s)", self.target, mode)

    # Multiplexed mode

    def _start_multiplexed(self, tasks: asyncio.TaskGroup) -> None:
        if self.config.role is Role.LISTEN:
            self.registry = SessionRegistry()
            tasks.create_task(self._listen_input_loop())
            tasks.create_task(self._listen_output_loop())
        else:
            self.sessions = SessionSockets(
                lambda: AsyncUDPSocket(self.host, 0, self.family),
                lambda session_id, sock: tasks.create_task(
                    self._session_output_loop(session_id, sock)
                ),
            )
            tasks.create_task(self._send_input_loop())

    async def _listen_input_loop(self) -> None:
        while True:
            line = await self.reader.readline()
            session_id, data = decode_frame(line)
            try:
                address = self.registry.lookup(session_id)
            except UnknownSessionError:
                logger.error("No peer has been assigned session %d", session_id)
                raise
            await self.socket.send_to(data, address)

    async def _listen_output_loop(self) -> None:
        while True:
            data, address = await self.socket.receive_from(self.config.buffer_size)
            session_id = self.registry.resolve(address)
            await self.writer.write_line(encode_frame(session_id, data))

    async def _send_input_loop(self) -> None:
        while True:
            line = await self.reader.readline()
            session_id, data = decode_frame(line)
            sock = self.sessions.get_or_create(session_id)
            await sock.send_to(data, self.target)

    async def _session_output_loop(self, session_id: int, sock: AsyncUDPSocket) -> None:
        while True:
            data, _ = await sock.receive_from(self.config.buffer_size)
            await self.writer.write_line(encode_frame(session_id, data))

    # Single-target mode

    def _start_single(self, tasks: asyncio.TaskGroup) -> None:
        self._outbox = asyncio.Queue()
        self.peer = PeerLock(self._outbox.put_nowait, self.target)
        tasks.create_task(self._single_input_loop())
        tasks.create_task(self._single_output_loop())
        tasks.create_task(self._outbox_loop())

    async def _single_input_loop(self) -> None:
        while True:
            line = await self.reader.readline()
            for data in decode_tokens(line):
                if not self.peer.submit(data):
                    logger.debug("No peer yet, queued %d byte payload", len(data))

    async def _single_output_loop(self) -> None:
        while True:
            data, address = await self.socket.receive_from(self.config.buffer_size)
            if self.peer.admit(address):
                await self.writer.write_line(encode_payload(data))

    async def _outbox_loop(self) -> None:
        while True:
            data, address = await self._outbox.get()
            await self.socket.send_to(data, address)
