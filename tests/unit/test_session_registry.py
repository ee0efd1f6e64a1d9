"""Unit tests for peers.registry module."""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from udprelay.errors import TransportError, UnknownSessionError
from udprelay.peers.registry import SessionRegistry, SessionSockets

A1 = ("127.0.0.1", 5001)
A2 = ("127.0.0.1", 5002)
A3 = ("10.0.0.3", 5001)


class TestSessionRegistry:
    """Test suite for SessionRegistry."""

    def test_ids_follow_arrival_order(self):
        """Test first-seen addresses get increasing ids and repeats keep theirs."""
        registry = SessionRegistry()

        ids = [registry.resolve(addr) for addr in (A1, A2, A1, A3)]

        assert ids == [0, 1, 0, 2]
        assert len(registry) == 3

    def test_lookup(self):
        """Test ids map back to their addresses."""
        registry = SessionRegistry()
        registry.resolve(A1)
        registry.resolve(A2)

        assert registry.lookup(0) == A1
        assert registry.lookup(1) == A2
        assert 1 in registry
        assert 2 not in registry

    def test_lookup_unknown(self):
        """Test unknown ids are never given an address."""
        registry = SessionRegistry()
        registry.resolve(A1)

        with pytest.raises(UnknownSessionError, match="Unknown session id 5") as exc:
            registry.lookup(5)
        assert exc.value.session_id == 5
        assert len(registry) == 1

    def test_same_host_different_port(self):
        """Test addresses differ when only the port differs."""
        registry = SessionRegistry()

        assert registry.resolve(("127.0.0.1", 1)) == 0
        assert registry.resolve(("127.0.0.1", 2)) == 1

    def test_deterministic_across_runs(self):
        """Test the same traffic sequence yields the same ids."""
        traffic = [A3, A1, A3, A2, A1]
        first = SessionRegistry()
        second = SessionRegistry()

        assert [first.resolve(a) for a in traffic] == [second.resolve(a) for a in traffic]

    def test_concurrent_resolve_keeps_maps_consistent(self):
        """Test racing threads never hand one address two ids."""
        registry = SessionRegistry()
        addresses = [("127.0.0.1", 6000 + i) for i in range(50)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(registry.resolve, addresses * 8))

        assert len(registry) == 50
        assert sorted(set(results)) == list(range(50))
        for addr in addresses:
            assert registry.lookup(registry.resolve(addr)) == addr


class FakeSocket:
    """Stand-in for AsyncUDPSocket that counts binds."""

    next_port = 40000

    def __init__(self):
        self.port = 0
        self.bound = 0
        self.closed = False

    def bind(self):
        self.bound += 1
        FakeSocket.next_port += 1
        self.port = FakeSocket.next_port

    def close(self):
        self.closed = True


class TestSessionSockets:
    """Test suite for SessionSockets."""

    def test_socket_created_on_first_use(self):
        """Test a new id binds one socket and spawns one listener."""
        spawn = Mock(return_value="task")
        sessions = SessionSockets(FakeSocket, spawn)

        sock = sessions.get_or_create(3)

        assert sock.bound == 1
        spawn.assert_called_once_with(3, sock)
        assert sessions.get(3).task == "task"
        assert len(sessions) == 1

    def test_socket_reused(self):
        """Test later frames with the same id reuse its socket."""
        spawn = Mock()
        sessions = SessionSockets(FakeSocket, spawn)

        first = sessions.get_or_create(0)
        second = sessions.get_or_create(0)

        assert first is second
        assert first.bound == 1
        assert spawn.call_count == 1

    def test_ids_get_distinct_sockets(self):
        """Test each id owns its own local port."""
        sessions = SessionSockets(FakeSocket, Mock())

        a = sessions.get_or_create(0)
        b = sessions.get_or_create(1)

        assert a is not b
        assert a.port != b.port
        assert [s.session_id for s in sessions.sessions()] == [0, 1]

    def test_bind_failure_registers_nothing(self):
        """Test a failed bind leaves no half-created session."""
        broken = Mock()
        broken.bind.side_effect = TransportError("Cannot bind")
        spawn = Mock()
        sessions = SessionSockets(lambda: broken, spawn)

        with pytest.raises(TransportError):
            sessions.get_or_create(0)

        assert len(sessions) == 0
        spawn.assert_not_called()

    def test_concurrent_creation_single_socket(self):
        """Test racing callers for one id share a single socket."""
        spawn = Mock()
        sessions = SessionSockets(FakeSocket, spawn)
        barrier = threading.Barrier(8)

        def create():
            barrier.wait()
            return sessions.get_or_create(7)

        with ThreadPoolExecutor(max_workers=8) as pool:
            socks = list(pool.map(lambda _: create(), range(8)))

        assert all(s is socks[0] for s in socks)
        assert spawn.call_count == 1

    def test_close(self):
        """Test close releases every session socket."""
        sessions = SessionSockets(FakeSocket, Mock())
        socks = [sessions.get_or_create(i) for i in range(3)]

        sessions.close()

        assert all(s.closed for s in socks)
