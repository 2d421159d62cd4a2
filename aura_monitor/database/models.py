"""
Domain models for database entities.

Epoch metadata and per-slot lifecycle rows. No ORM coupling so backends
stay swappable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SlotStatus(str, Enum):
    """Lifecycle status of an own slot; values are the stored strings."""

    SCHEDULE = "schedule"
    MINT = "mint"
    FINALITY = "finality"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_advance_to(self, target: "SlotStatus") -> bool:
        """schedule -> mint, schedule -> finality, mint -> finality; nothing else."""
        return target.rank > self.rank


_STATUS_RANK = {
    SlotStatus.SCHEDULE: 0,
    SlotStatus.MINT: 1,
    SlotStatus.FINALITY: 2,
}


@dataclass
class EpochInfo:
    """Stored epoch framing and the authority set it was observed with."""

    epoch: int
    start_slot: int
    end_slot: int
    authority_set_hash: str
    """0x-hex SHA-256 fingerprint of the ordered authority set."""
    authority_set_len: int
    created_at_utc: str | None = None
    """ISO 8601 time of the first upsert; preserved by later upserts."""


@dataclass
class SlotRecord:
    """One own slot and what the chain did with it."""

    slot: int
    epoch: int
    planned_time_utc: str
    status: SlotStatus
    block_number: int | None = None
    block_hash: str | None = None
    produced_time_utc: str | None = None
    """ISO 8601 chain timestamp of the block (local clock if unavailable)."""
