"""
Session id bookkeeping for multiplexed mode.

The listening side learns ids from traffic (:class:`SessionRegistry`); the
sending side gets ids from its controlling process and gives each one its
own ephemeral socket (:class:`SessionSockets`). Both guard their maps with
a single lock that is never held across I/O.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from udprelay.errors import UnknownSessionError
from udprelay.transports.udp.async_socket import AsyncUDPSocket

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Bidirectional map between session ids and peer addresses.

    Ids are handed out in order of first arrival, starting at 0, and are
    never reused. ``id2addr[k] == v`` holds exactly when ``addr2id[v] == k``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._addr2id: Dict[Tuple, int] = {}
        self._id2addr: Dict[int, Tuple] = {}

    def resolve(self, address: Tuple) -> int:
        """
        Return the id for a source address, assigning the next one if unseen.

        Args:
            address: Source address of an inbound datagram

        Returns:
            Session id
        """
        with self._lock:
            session_id = self._addr2id.get(address)
            if session_id is not None:
                return session_id
            session_id = len(self._addr2id)
            self._addr2id[address] = session_id
            self._id2addr[session_id] = address

        logger.info("New peer %s assigned session %d", address, session_id)
        return session_id

    def lookup(self, session_id: int) -> Tuple:
        """
        Return the address learned for a session id.

        Raises:
            UnknownSessionError: If no datagram from that session was ever seen
        """
        with self._lock:
            address = self._id2addr.get(session_id)
        if address is None:
            raise UnknownSessionError(session_id)
        return address

    def __len__(self) -> int:
        with self._lock:
            return len(self._id2addr)

    def __contains__(self, session_id: int) -> bool:
        with self._lock:
            return session_id in self._id2addr


@dataclass
class Session:
    """An outbound virtual circuit: one id, one local socket, one listener."""

    session_id: int
    socket: AsyncUDPSocket
    task: Optional[asyncio.Task] = None


class SessionSockets:
    """
    Lazily created per-id outbound sockets.

    ``socket_factory`` returns an unbound socket; ``spawn`` starts the
    background listener for a freshly bound one and returns its task. Both
    run inside the critical section so a given id never gets two sockets.
    """

    def __init__(
        self,
        socket_factory: Callable[[], AsyncUDPSocket],
        spawn: Callable[[int, AsyncUDPSocket], Optional[asyncio.Task]],
    ):
        self._socket_factory = socket_factory
        self._spawn = spawn
        self._lock = threading.Lock()
        self._sessions: Dict[int, Session] = {}

    def get_or_create(self, session_id: int) -> AsyncUDPSocket:
        """
        Return the socket owned by ``session_id``, creating it on first use.

        Raises:
            TransportError: If a new socket cannot be bound
        """
        created = False
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                sock = self._socket_factory()
                sock.bind()
                session = Session(session_id, sock, self._spawn(session_id, sock))
                self._sessions[session_id] = session
                created = True

        if created:
            logger.info(
                "Session %d uses local port %d", session_id, session.socket.port
            )
        return session.socket

    def get(self, session_id: int) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self) -> None:
        """Close every session socket."""
        for session in self.sessions():
            session.socket.close()
