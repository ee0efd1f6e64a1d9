"""Shared fixtures for relay tests."""

import asyncio
import io

import pytest

from udprelay.transports.stdio import FileLineWriter, StreamLineReader
from udprelay.transports.udp.async_socket import AsyncUDPSocket


class Pipe:
    """In-memory stdin/stdout pair for driving a relay."""

    def __init__(self):
        self._reader = None
        self.output = io.StringIO()
        self.writer = FileLineWriter(self.output)

    @property
    def reader(self) -> StreamLineReader:
        # Created on first use so it binds to the running loop
        if self._reader is None:
            self._reader = StreamLineReader(asyncio.StreamReader())
        return self._reader

    def feed(self, line: str) -> None:
        self.reader.reader.feed_data(line.encode("ascii"))

    def close(self) -> None:
        self.reader.reader.feed_eof()

    def lines(self):
        return self.output.getvalue().splitlines()

    async def wait_for_lines(self, count: int, timeout: float = 2.0):
        """Wait until at least ``count`` output lines were written."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.lines()) < count:
            if loop.time() > deadline:
                raise AssertionError(
                    f"expected {count} output lines, got {self.lines()!r}"
                )
            await asyncio.sleep(0.01)
        return self.lines()


@pytest.fixture
def pipe():
    return Pipe()


class Peers:
    """Loopback UDP sockets playing remote peers."""

    def __init__(self):
        self.opened = []

    def make(self) -> AsyncUDPSocket:
        sock = AsyncUDPSocket("127.0.0.1", 0)
        sock.bind()
        self.opened.append(sock)
        return sock

    async def receive(self, sock: AsyncUDPSocket, timeout: float = 2.0):
        return await asyncio.wait_for(sock.receive_from(), timeout)

    async def assert_silent(self, sock: AsyncUDPSocket, wait: float = 0.2):
        """Assert nothing arrives on ``sock`` within ``wait`` seconds."""
        try:
            data, addr = await asyncio.wait_for(sock.receive_from(), wait)
        except asyncio.TimeoutError:
            return
        raise AssertionError(f"unexpected datagram {data!r} from {addr}")

    def close(self):
        for sock in self.opened:
            sock.close()


@pytest.fixture
def peers():
    udp = Peers()
    yield udp
    udp.close()


@pytest.fixture
def make_pipe():
    """Factory for tests that drive more than one relay."""
    return Pipe
