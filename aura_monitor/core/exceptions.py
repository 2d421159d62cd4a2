"""
Application-level exceptions.

All fatal conditions derive from MonitorError so the CLI entrypoint can turn
them into a descriptive message and a non-zero exit code:
- ConfigError: invalid startup parameters (raised before any RPC use).
- IdentityError: keystore has zero or several Aura keys, or the node does not
  hold the resolved key.
- TransportError: a chain RPC call failed.
- StoreError: a SQLite read or write failed.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for errors that terminate a monitoring run."""


class ConfigError(MonitorError):
    """Invalid configuration value."""


class IdentityError(MonitorError):
    """Validator identity could not be resolved or confirmed."""


class TransportError(MonitorError):
    """Chain RPC request failed (connection, HTTP status, or JSON-RPC error)."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class StoreError(MonitorError):
    """Persistence failure; the run must not continue without durable recording."""
