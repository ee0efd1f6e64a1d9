"""
Frame codec: one datagram per line of text.

Multiplexed mode frames look like ``<id>:<base64>``; single-target mode
lines carry one or more whitespace-separated base64 tokens, each of which
is one datagram. Payloads use the standard base64 alphabet with padding.
"""

import base64
import binascii
from typing import List, Tuple

from udprelay.errors import FrameDecodeError


def _b64decode(token: str, line: str) -> bytes:
    try:
        return base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FrameDecodeError(line, f"invalid base64: {e}") from e


def encode_payload(data: bytes) -> str:
    """Encode one datagram as a bare single-target line (with newline)."""
    return base64.b64encode(data).decode("ascii") + "\n"


def encode_frame(session_id: int, data: bytes) -> str:
    """Encode one datagram as a multiplexed ``id:base64`` line (with newline)."""
    return f"{session_id}:{base64.b64encode(data).decode('ascii')}\n"


def decode_frame(line: str) -> Tuple[int, bytes]:
    """
    Decode a multiplexed frame line.

    All whitespace is removed before the line is split, so ``" 3 : aGk= "``
    is the same frame as ``"3:aGk="``.

    Args:
        line: One line of input, with or without its trailing newline

    Returns:
        Tuple of (session_id, payload)

    Raises:
        FrameDecodeError: If the field count, id or payload is invalid
    """
    compact = "".join(line.split())
    fields = compact.split(":")
    if len(fields) != 2:
        raise FrameDecodeError(line, "expected <id>:<base64>")

    raw_id, data = fields
    if not (raw_id.isascii() and raw_id.isdigit()):
        raise FrameDecodeError(line, f"session id {raw_id!r} is not a non-negative integer")

    return int(raw_id), _b64decode(data, line)


def decode_tokens(line: str) -> List[bytes]:
    """
    Decode a single-target line into its datagrams.

    Raises:
        FrameDecodeError: If the line is blank or any token is invalid base64
    """
    tokens = line.split()
    if not tokens:
        raise FrameDecodeError(line, "no payload")
    return [_b64decode(token, line) for token in tokens]
