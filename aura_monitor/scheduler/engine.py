"""
Slot schedule engine: which slots of an epoch belong to an identity, and when.

Aura assigns slot s to authorities[s mod len(authorities)]. The engine frames
epochs (start_slot = epoch * epoch_size), lists the identity's own slots in a
scan window, fingerprints that list to detect assignment changes within an
epoch, and projects wall-clock times by linear extrapolation from a reference
slot. Pure functions; identical inputs always give identical outputs.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class EpochWindow:
    """
    Slot framing for one epoch.

    end_slot is the last slot of the epoch; scan_len is how many slots are
    scanned from start_slot, which an operator may set independently of
    epoch_size.
    """

    epoch: int
    epoch_size: int
    start_slot: int
    end_slot: int
    scan_len: int

    @classmethod
    def for_epoch(
        cls,
        epoch: int,
        epoch_size: int,
        slots_override: int | None = None,
    ) -> "EpochWindow":
        if epoch_size <= 0:
            raise ValueError("epoch_size must be positive")
        start = epoch * epoch_size
        return cls(
            epoch=epoch,
            epoch_size=epoch_size,
            start_slot=start,
            end_slot=start + epoch_size - 1,
            scan_len=slots_override if slots_override is not None else epoch_size,
        )

    @property
    def next_epoch_start(self) -> int:
        return self.start_slot + self.epoch_size


def epoch_of(slot: int, epoch_size: int) -> int:
    return slot // epoch_size


def expected_author(authorities: Sequence[bytes], slot: int) -> bytes | None:
    """Round-robin owner of a slot; None when there are no authorities."""
    if not authorities:
        return None
    return authorities[slot % len(authorities)]


def own_slots(
    authorities: Sequence[bytes],
    identity: bytes,
    start_slot: int,
    window_len: int,
) -> list[int]:
    """
    Return the slots in [start_slot, start_slot + window_len) assigned to identity,
    in ascending order. Empty authorities yield an empty list.
    """
    if not authorities:
        return []
    n = len(authorities)
    return [
        slot
        for slot in range(start_slot, start_slot + window_len)
        if authorities[slot % n] == identity
    ]


def schedule_fingerprint(slots: Sequence[int]) -> bytes:
    """SHA-256 over 8-byte little-endian encodings of the slots in ascending order."""
    hasher = hashlib.sha256()
    for slot in sorted(slots):
        hasher.update(struct.pack("<Q", slot))
    return hasher.digest()


def project_time(
    slot: int,
    reference_slot: int,
    reference_time_ms: int,
    slot_duration_ms: int,
) -> int:
    """Projected start time (ms) of slot; works for slots before the reference too."""
    return reference_time_ms + (slot - reference_slot) * slot_duration_ms
