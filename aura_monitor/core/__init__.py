"""
Core utilities: shared exceptions and cross-cutting concerns.

Provides the error taxonomy used by identity resolution, chain RPC,
persistence, and the polling worker.
"""

from aura_monitor.core.exceptions import (
    ConfigError,
    IdentityError,
    MonitorError,
    StoreError,
    TransportError,
)

__all__ = [
    "ConfigError",
    "IdentityError",
    "MonitorError",
    "StoreError",
    "TransportError",
]
