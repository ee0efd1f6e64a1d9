"""Peer state shared between the relay loops."""

from udprelay.peers.lock import PeerLock
from udprelay.peers.registry import Session, SessionRegistry, SessionSockets

__all__ = ["PeerLock", "Session", "SessionRegistry", "SessionSockets"]
