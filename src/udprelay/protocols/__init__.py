"""Line protocol spoken with the controlling process."""

from udprelay.protocols.codec import (
    decode_frame,
    decode_tokens,
    encode_frame,
    encode_payload,
)

__all__ = ["decode_frame", "decode_tokens", "encode_frame", "encode_payload"]
