# Slot scheduling: epoch framing, round-robin ownership, time projection.
# Deterministic rules only; no chain access.

from aura_monitor.scheduler.engine import (
    EpochWindow,
    epoch_of,
    expected_author,
    own_slots,
    project_time,
    schedule_fingerprint,
)

__all__ = [
    "EpochWindow",
    "epoch_of",
    "expected_author",
    "own_slots",
    "project_time",
    "schedule_fingerprint",
]
