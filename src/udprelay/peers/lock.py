"""Single-target peer admission with a pending send queue."""

import logging
import threading
from collections import deque
from typing import Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

Dispatch = Callable[[bytes, Tuple], None]


class PeerLock:
    """
    Holds the one peer a single-target relay talks to.

    The first address recorded wins and never changes afterwards. Payloads
    submitted before a target is known wait in a FIFO queue; recording the
    target hands every queued payload to ``dispatch`` in order, inside the
    same critical section, so a concurrent submit cannot overtake them.

    ``dispatch`` must not block. The relay passes ``Queue.put_nowait`` of
    an outbox drained by a sender task.
    """

    def __init__(self, dispatch: Dispatch, target: Optional[Tuple] = None):
        self._dispatch = dispatch
        self._lock = threading.Lock()
        self._target: Optional[Tuple] = None
        self._pending: Deque[bytes] = deque()
        if target is not None:
            self.set_target(target)

    @property
    def target(self) -> Optional[Tuple]:
        with self._lock:
            return self._target

    @property
    def pending(self) -> Tuple[bytes, ...]:
        """Snapshot of payloads still waiting for a target."""
        with self._lock:
            return tuple(self._pending)

    def _record(self, address: Tuple) -> int:
        # Caller holds self._lock
        self._target = address
        drained = len(self._pending)
        while self._pending:
            self._dispatch(self._pending.popleft(), address)
        return drained

    def set_target(self, address: Tuple) -> bool:
        """
        Record the target if none is set yet.

        Returns:
            True if this call recorded the target
        """
        with self._lock:
            if self._target is not None:
                return False
            drained = self._record(address)

        logger.info("Peer locked to %s", address)
        if drained:
            logger.debug("Flushed %d queued payload(s) to %s", drained, address)
        return True

    def admit(self, address: Tuple) -> bool:
        """
        Decide whether an inbound datagram from ``address`` is relayed.

        The first sender ever seen becomes the target. Datagrams from any
        other address are refused.
        """
        with self._lock:
            if self._target is None:
                drained = self._record(address)
                locked = True
            else:
                drained = 0
                locked = False
            accepted = self._target == address

        if locked:
            logger.info("Peer locked to %s", address)
            if drained:
                logger.debug("Flushed %d queued payload(s) to %s", drained, address)
        elif not accepted:
            logger.debug("Dropping datagram from unrecognized peer %s", address)
        return accepted

    def submit(self, data: bytes) -> bool:
        """
        Send ``data`` to the target, or queue it until one is known.

        Returns:
            True if dispatched immediately, False if queued
        """
        with self._lock:
            if self._target is None:
                self._pending.append(data)
                return False
            self._dispatch(data, self._target)
            return True
