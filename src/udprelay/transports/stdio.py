"""Line streams shared with the controlling process."""

import asyncio
import os
import stat
import sys
from asyncio.streams import FlowControlMixin
from typing import IO, Optional

from udprelay.errors import FrameDecodeError, InputClosed

# A base64 frame for a 65535-byte datagram is about 87 KiB
LINE_LIMIT = 1 << 20


def _is_regular_file(stream: IO) -> bool:
    return stat.S_ISREG(os.fstat(stream.fileno()).st_mode)


class StreamLineReader:
    """Reads newline-delimited frames from an asyncio stream."""

    def __init__(self, reader: asyncio.StreamReader):
        self.reader = reader

    async def readline(self) -> str:
        """
        Read one line.

        Raises:
            InputClosed: At end of input
            FrameDecodeError: If the line is longer than the reader's limit
        """
        try:
            raw = await self.reader.readline()
        except ValueError as e:
            raise FrameDecodeError(None, f"line too long: {e}") from e
        if not raw:
            raise InputClosed("input closed by controlling process")
        return raw.decode("ascii", errors="replace")


class FileLineReader:
    """Reads lines from a regular file, which the event loop cannot poll."""

    def __init__(self, stream: IO):
        self.stream = stream

    async def readline(self) -> str:
        try:
            line = await asyncio.to_thread(self.stream.readline)
        except UnicodeDecodeError as e:
            raise FrameDecodeError(None, f"input is not text: {e}") from e
        if not line:
            raise InputClosed("input closed by controlling process")
        if isinstance(line, bytes):
            line = line.decode("ascii", errors="replace")
        return line


async def open_stdin(stream: Optional[IO] = None):
    """
    Wrap standard input for async line reading.

    Pipes, sockets and terminals are attached to the event loop; regular
    files (``udprelay send ... < frames.txt``) are read in a worker thread.
    """
    stream = stream if stream is not None else sys.stdin
    if _is_regular_file(stream):
        # Bytes, so undecodable input becomes a frame error, not a crash
        return FileLineReader(getattr(stream, "buffer", stream))

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=LINE_LIMIT)
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), stream
    )
    return StreamLineReader(reader)


class LineWriter:
    """
    Writes frames to the controlling process.

    Every line is flushed before ``write_line`` returns. Writers from
    concurrent listeners are serialized so lines never interleave, and a
    slow reader only holds up the tasks producing output.
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    async def write_line(self, line: str) -> None:
        async with self._lock:
            await self._write(line)

    async def _write(self, line: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class StreamLineWriter(LineWriter):
    """Writes lines to a pipe, socket or terminal attached to the event loop."""

    def __init__(self, writer: asyncio.StreamWriter):
        super().__init__()
        self.writer = writer

    async def _write(self, line: str) -> None:
        self.writer.write(line.encode("ascii"))
        await self.writer.drain()

    def close(self) -> None:
        self.writer.close()


class FileLineWriter(LineWriter):
    """Writes lines to a blocking stream from a worker thread."""

    def __init__(self, stream: Optional[IO[str]] = None):
        super().__init__()
        self.stream = stream if stream is not None else sys.stdout

    def _write_blocking(self, line: str) -> None:
        self.stream.write(line)
        self.stream.flush()

    async def _write(self, line: str) -> None:
        await asyncio.to_thread(self._write_blocking, line)


async def open_stdout(stream: Optional[IO] = None) -> LineWriter:
    """
    Wrap standard output for async line writing.

    Pipes, sockets and terminals get a non-blocking stream writer; regular
    files are written from a worker thread.
    """
    stream = stream if stream is not None else sys.stdout
    if _is_regular_file(stream):
        return FileLineWriter(stream)

    stream.flush()
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.connect_write_pipe(FlowControlMixin, stream)
    # drain() then waits until the line has left the buffer entirely
    transport.set_write_buffer_limits(high=0)
    return StreamLineWriter(asyncio.StreamWriter(transport, protocol, None, loop))
