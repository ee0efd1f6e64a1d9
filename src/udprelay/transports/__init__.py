"""Transports used by the relay."""
