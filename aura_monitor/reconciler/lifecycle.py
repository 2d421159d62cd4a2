"""
Per-slot lifecycle state machine: schedule -> mint -> finality.

Two triggers drive transitions:
- a new best head whose Aura slot is owned by the identity under the current
  authority set marks that slot minted;
- finality advancing from N to M scans blocks N+1..M and marks each block's
  slot finalized.

Markers (last best hash, last finalized number) are passed in and returned,
never held here, so synthetic histories can be replayed in tests. All writes
go through the store's guarded updates, which makes re-applying the same
transition a no-op.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Sequence

from aura_monitor.chain.models import Header
from aura_monitor.chain.rpc import ChainRpc
from aura_monitor.core.exceptions import TransportError
from aura_monitor.database import Database, SlotStatus
from aura_monitor.monitor_logging import get_logger
from aura_monitor.report import to_utc_iso
from aura_monitor.scheduler import expected_author

logger = get_logger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SlotTransition:
    """A status transition the reconciler attempted for one slot."""

    slot: int
    block_number: int
    block_hash: str
    status: SlotStatus
    produced_time_utc: str | None
    applied: bool
    """True if the stored row changed; False for a guarded no-op or no store."""


class LifecycleReconciler:
    """
    Applies mint and finality transitions for one validator identity.

    store may be None (storage disabled): markers still advance and mint
    transitions are still reported, but nothing is written and no produced
    time is fetched.
    """

    def __init__(
        self,
        rpc: ChainRpc,
        identity: bytes,
        store: Database | None = None,
        *,
        now_ms: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self._rpc = rpc
        self._identity = identity
        self._store = store
        self._now_ms = now_ms

    def produced_time(self, block_hash: str) -> str:
        """Chain timestamp of a block as ISO 8601 UTC; local clock if unavailable."""
        try:
            ts_ms = self._rpc.timestamp_now(block_hash)
        except TransportError as e:
            logger.warning("produced_time_fallback", block_hash=block_hash, error=str(e))
            ts_ms = None
        if ts_ms is None:
            ts_ms = self._now_ms()
        return to_utc_iso(ts_ms)

    def _record(
        self,
        slot: int,
        block_number: int,
        block_hash: str,
        status: SlotStatus,
    ) -> SlotTransition:
        if self._store is None:
            return SlotTransition(slot, block_number, block_hash, status, None, False)
        produced = self.produced_time(block_hash)
        applied = self._store.update_block_status(slot, block_number, block_hash, produced, status)
        return SlotTransition(slot, block_number, block_hash, status, produced, applied)

    def on_best_head(
        self,
        last_best_hash: str | None,
        best_hash: str,
        best_header: Header,
        authorities: Sequence[bytes],
    ) -> tuple[str | None, SlotTransition | None]:
        """
        Mint trigger. Returns (new last best hash, transition or None).

        The expected author is taken from the authority set passed in (the set
        current at check time), not from the set the schedule was computed with.
        """
        if last_best_hash == best_hash:
            return last_best_hash, None
        slot = best_header.aura_slot
        if slot is None:
            logger.debug("best_head_without_aura_slot", block_hash=best_hash)
            return best_hash, None
        if expected_author(authorities, slot) != self._identity:
            return best_hash, None
        transition = self._record(slot, best_header.number, best_hash, SlotStatus.MINT)
        logger.info(
            "slot_minted",
            slot=slot,
            block_number=best_header.number,
            block_hash=best_hash,
            applied=transition.applied,
        )
        return best_hash, transition

    def on_finality(
        self,
        last_finalized: int,
        finalized_number: int,
    ) -> tuple[int, list[SlotTransition]]:
        """
        Finality trigger. Returns (new last finalized number, transitions).

        Blocks whose hash or header cannot be resolved are skipped. The marker
        moves to finalized_number after the pass even when blocks were skipped.
        """
        if finalized_number <= last_finalized:
            return last_finalized, []
        transitions: list[SlotTransition] = []
        skipped: list[int] = []
        for number in range(last_finalized + 1, finalized_number + 1):
            header = self._resolve(number)
            if header is None:
                skipped.append(number)
                continue
            block_hash, hdr = header
            slot = hdr.aura_slot
            if slot is None:
                skipped.append(number)
                continue
            if self._store is None:
                continue
            row = self._store.get_slot(slot)
            if row is None or not row.status.can_advance_to(SlotStatus.FINALITY):
                continue
            transition = self._record(slot, number, block_hash, SlotStatus.FINALITY)
            transitions.append(transition)
            logger.info(
                "slot_finalized",
                slot=slot,
                block_number=number,
                block_hash=block_hash,
                previous_status=row.status.value,
                applied=transition.applied,
            )
        if skipped:
            logger.warning(
                "finality_blocks_skipped",
                from_number=last_finalized + 1,
                to_number=finalized_number,
                skipped=skipped,
            )
        return finalized_number, transitions

    def _resolve(self, number: int) -> tuple[str, Header] | None:
        """Hash and header of block `number`, or None if either lookup fails."""
        try:
            block_hash = self._rpc.block_hash(number)
            if block_hash is None:
                return None
            header = self._rpc.header(block_hash)
        except TransportError as e:
            logger.warning("finality_block_unresolved", block_number=number, error=str(e))
            return None
        if header is None:
            return None
        return block_hash, header
