"""Exceptions raised by the relay."""

from typing import Optional


class RelayError(Exception):
    """Base class for relay failures."""


class ConfigError(RelayError):
    """Invalid startup configuration."""


class FrameDecodeError(RelayError, ValueError):
    """A line from the controlling process is not a valid frame."""

    def __init__(self, line: Optional[str], reason: str):
        self.line = line
        self.reason = reason
        if line is None:
            super().__init__(f"Invalid frame: {reason}")
        else:
            super().__init__(f"Invalid frame {line!r}: {reason}")


class TransportError(RelayError, ConnectionError):
    """A UDP socket operation failed."""


class PacketBoundaryError(TransportError):
    """A datagram was only partially written."""

    def __init__(self, expected: int, written: int):
        self.expected = expected
        self.written = written
        super().__init__(
            f"packet boundary broken: wrote {written} of {expected} bytes"
        )


class UnknownSessionError(RelayError, KeyError):
    """No peer address was ever learned for a session id."""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(session_id)

    def __str__(self):
        return f"Unknown session id {self.session_id}"


class InputClosed(RelayError):
    """The controlling process closed its end of the input stream."""
