"""
Database abstraction layer: epoch metadata and slot lifecycle rows.

Uses SQLite via Database and get_database(); the backend is swappable.
"""

from aura_monitor.database.database import (
    Database,
    DatabaseBackend,
    SQLiteBackend,
    get_database,
)
from aura_monitor.database.models import (
    EpochInfo,
    SlotRecord,
    SlotStatus,
)

__all__ = [
    "Database",
    "DatabaseBackend",
    "SQLiteBackend",
    "get_database",
    "EpochInfo",
    "SlotRecord",
    "SlotStatus",
]
