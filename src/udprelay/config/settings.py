"""Relay configuration settings."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from udprelay.errors import ConfigError

# Largest possible UDP payload
MAX_DATAGRAM_SIZE = 65535


class Role(Enum):
    """Which side of the tunnel leg this process plays."""

    LISTEN = "listen"
    SEND = "send"


class Mode(Enum):
    """How many peers one relay addresses."""

    MULTIPLEXED = "multiplexed"
    SINGLE = "single"


@dataclass
class RelayConfig:
    """Relay configuration."""

    role: Role = Role.LISTEN
    mode: Mode = Mode.MULTIPLEXED
    host: Optional[str] = None
    port: int = 0
    target: Optional[Tuple[str, int]] = None
    buffer_size: int = MAX_DATAGRAM_SIZE
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.buffer_size < MAX_DATAGRAM_SIZE:
            raise ConfigError(
                f"buffer_size must be at least {MAX_DATAGRAM_SIZE}, got {self.buffer_size}"
            )
        if self.role is Role.SEND and self.target is None:
            raise ConfigError("send role requires a target")

    @property
    def multiplexed(self) -> bool:
        return self.mode is Mode.MULTIPLEXED
