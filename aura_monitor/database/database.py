"""
Database abstraction for epoch metadata and per-slot lifecycle rows.

SQLite backend behind an abstract interface. Every write is an idempotent
upsert or a guarded update:
- epoch_info is upserted by epoch; created_at_utc keeps its first value.
- a schedule is written in one transaction; on conflict only epoch and
  planned time are rewritten, and only while the row is still 'schedule'.
- status only advances schedule -> mint -> finality (or schedule -> finality).
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Sequence

from aura_monitor.core.exceptions import StoreError
from aura_monitor.database.models import EpochInfo, SlotRecord, SlotStatus
from aura_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Schema (SQLite).
# -----------------------------------------------------------------------------

SCHEMA_EPOCH_INFO = """
CREATE TABLE IF NOT EXISTS epoch_info (
    epoch INTEGER PRIMARY KEY,
    start_slot INTEGER NOT NULL,
    end_slot INTEGER NOT NULL,
    authority_set_hash TEXT NOT NULL,
    authority_set_len INTEGER NOT NULL,
    created_at_utc TEXT NOT NULL
);
"""

SCHEMA_BLOCKS = """
CREATE TABLE IF NOT EXISTS blocks (
    slot INTEGER PRIMARY KEY,
    epoch INTEGER NOT NULL,
    planned_time_utc TEXT NOT NULL,
    block_number INTEGER,
    block_hash TEXT,
    produced_time_utc TEXT,
    status TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_blocks_epoch ON blocks(epoch);
"""

_SLOT_COLUMNS = "slot, epoch, planned_time_utc, block_number, block_hash, produced_time_utc, status"


def _row_to_slot(row: sqlite3.Row) -> SlotRecord:
    return SlotRecord(
        slot=row["slot"],
        epoch=row["epoch"],
        planned_time_utc=row["planned_time_utc"],
        status=SlotStatus(row["status"]),
        block_number=row["block_number"],
        block_hash=row["block_hash"],
        produced_time_utc=row["produced_time_utc"],
    )


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class DatabaseBackend(ABC):
    """Abstract interface for persistence."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        ...

    @abstractmethod
    def upsert_epoch_info(self, info: EpochInfo) -> None:
        """Insert or update epoch metadata keyed by epoch."""
        ...

    @abstractmethod
    def insert_schedule(self, epoch: int, planned: Sequence[tuple[int, str]]) -> int:
        """
        Write (slot, planned_time_utc) rows as 'schedule' in one transaction.
        Returns the number of rows inserted or rewritten.
        """
        ...

    @abstractmethod
    def update_block_status(
        self,
        slot: int,
        block_number: int,
        block_hash: str,
        produced_time_utc: str,
        status: SlotStatus,
    ) -> bool:
        """Apply a guarded status transition. Returns True if a row changed."""
        ...

    @abstractmethod
    def get_epoch_info(self, epoch: int) -> EpochInfo | None:
        ...

    @abstractmethod
    def get_slot(self, slot: int) -> SlotRecord | None:
        ...

    @abstractmethod
    def get_slots_for_epoch(self, epoch: int) -> list[SlotRecord]:
        """Return slot rows for an epoch, ascending by slot."""
        ...


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteBackend(DatabaseBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """One transaction: commit on success, roll back and raise StoreError on failure."""
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"cannot open database '{self._path}': {e}") from e
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"database error on '{self._path}': {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in (SCHEMA_EPOCH_INFO, SCHEMA_BLOCKS):
                cur.executescript(stmt)

    def upsert_epoch_info(self, info: EpochInfo) -> None:
        created = info.created_at_utc or datetime.now(timezone.utc).isoformat()
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO epoch_info (epoch, start_slot, end_slot, authority_set_hash, authority_set_len, created_at_utc)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(epoch) DO UPDATE SET
                    start_slot = excluded.start_slot,
                    end_slot = excluded.end_slot,
                    authority_set_hash = excluded.authority_set_hash,
                    authority_set_len = excluded.authority_set_len
                """,
                (
                    info.epoch,
                    info.start_slot,
                    info.end_slot,
                    info.authority_set_hash,
                    info.authority_set_len,
                    created,
                ),
            )

    def insert_schedule(self, epoch: int, planned: Sequence[tuple[int, str]]) -> int:
        if not planned:
            return 0
        written = 0
        with self._cursor() as cur:
            for slot, planned_time_utc in planned:
                cur.execute(
                    """
                    INSERT INTO blocks (slot, epoch, planned_time_utc, status)
                    VALUES (?, ?, ?, 'schedule')
                    ON CONFLICT(slot) DO UPDATE SET
                        epoch = excluded.epoch,
                        planned_time_utc = excluded.planned_time_utc
                    WHERE blocks.status = 'schedule'
                    """,
                    (slot, epoch, planned_time_utc),
                )
                written += cur.rowcount
        return written

    def update_block_status(
        self,
        slot: int,
        block_number: int,
        block_hash: str,
        produced_time_utc: str,
        status: SlotStatus,
    ) -> bool:
        if status is SlotStatus.SCHEDULE:
            raise ValueError("update_block_status cannot move a slot back to 'schedule'")
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE blocks
                SET block_number = ?, block_hash = ?, produced_time_utc = ?, status = ?
                WHERE slot = ?
                  AND (
                    (? = 'mint' AND status = 'schedule') OR
                    (? = 'finality' AND status IN ('schedule', 'mint'))
                  )
                """,
                (
                    block_number,
                    block_hash,
                    produced_time_utc,
                    status.value,
                    slot,
                    status.value,
                    status.value,
                ),
            )
            return cur.rowcount > 0

    def get_epoch_info(self, epoch: int) -> EpochInfo | None:
        with self._cursor() as cur:
            cur.execute(
                "SELECT epoch, start_slot, end_slot, authority_set_hash, authority_set_len, created_at_utc FROM epoch_info WHERE epoch = ?",
                (epoch,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return EpochInfo(
            epoch=row["epoch"],
            start_slot=row["start_slot"],
            end_slot=row["end_slot"],
            authority_set_hash=row["authority_set_hash"],
            authority_set_len=row["authority_set_len"],
            created_at_utc=row["created_at_utc"],
        )

    def get_slot(self, slot: int) -> SlotRecord | None:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_SLOT_COLUMNS} FROM blocks WHERE slot = ?", (slot,))
            row = cur.fetchone()
        return _row_to_slot(row) if row is not None else None

    def get_slots_for_epoch(self, epoch: int) -> list[SlotRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_SLOT_COLUMNS} FROM blocks WHERE epoch = ? ORDER BY slot ASC",
                (epoch,),
            )
            rows = cur.fetchall()
        return [_row_to_slot(row) for row in rows]


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """Epoch metadata and slot lifecycle store."""

    def __init__(self, backend: DatabaseBackend) -> None:
        self._backend = backend

    def ensure_schema(self) -> None:
        self._backend.ensure_schema()

    # --- Epochs ---

    def upsert_epoch_info(self, info: EpochInfo) -> None:
        self._backend.upsert_epoch_info(info)
        logger.debug(
            "db_epoch_upserted",
            epoch=info.epoch,
            authority_set_len=info.authority_set_len,
        )

    def get_epoch_info(self, epoch: int) -> EpochInfo | None:
        return self._backend.get_epoch_info(epoch)

    # --- Slots ---

    def insert_schedule(self, epoch: int, planned: Sequence[tuple[int, str]]) -> int:
        """Write an epoch's own-slot schedule atomically. Returns rows written."""
        written = self._backend.insert_schedule(epoch, planned)
        logger.debug("db_schedule_written", epoch=epoch, slots=len(planned), written=written)
        return written

    def update_block_status(
        self,
        slot: int,
        block_number: int,
        block_hash: str,
        produced_time_utc: str,
        status: SlotStatus,
    ) -> bool:
        """Advance a slot to mint or finality. No-op (False) when the guard rejects it."""
        return self._backend.update_block_status(
            slot, block_number, block_hash, produced_time_utc, status
        )

    def get_slot(self, slot: int) -> SlotRecord | None:
        return self._backend.get_slot(slot)

    def get_slots_for_epoch(self, epoch: int) -> list[SlotRecord]:
        return self._backend.get_slots_for_epoch(epoch)


def get_database(path: str | Path | None = None) -> Database:
    """
    Return a schema-initialized Database backed by SQLite.

    path: SQLite file. Default: "aura_schedule.sqlite" in cwd.
    """
    if path is None:
        path = Path("aura_schedule.sqlite")
    backend = SQLiteBackend(path)
    db = Database(backend)
    db.ensure_schema()
    return db
