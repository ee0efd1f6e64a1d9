"""Relay configuration."""

from udprelay.config.settings import Mode, RelayConfig, Role

__all__ = ["Mode", "RelayConfig", "Role"]
