"""Bidirectional UDP relay speaking base64 lines on stdin/stdout."""

from udprelay.config.settings import Mode, RelayConfig, Role
from udprelay.relay import Relay

__version__ = "0.1.0"
__all__ = ["Relay", "RelayConfig", "Mode", "Role", "__version__"]
