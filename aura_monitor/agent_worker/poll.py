"""
One polling iteration: fetch -> detect -> compute -> reconcile -> persist.

run_iteration() takes the previous PollState and returns the next one, so the
loop-carried state is an explicit value. PollState only suppresses redundant
output and writes; starting from an empty state re-emits, it never corrupts.

compute_sleep_seconds() picks the watch-mode interval: wake just past the
next epoch boundary when that is sooner than the configured interval,
otherwise use the interval as a ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from aura_monitor.authority import AuthoritySetTracker, changed
from aura_monitor.chain.models import Header
from aura_monitor.chain.rpc import ChainRpc
from aura_monitor.core.exceptions import TransportError
from aura_monitor.database import Database, EpochInfo
from aura_monitor.identity import ValidatorIdentity
from aura_monitor.monitor_logging import bind_epoch, get_logger
from aura_monitor.reconciler import LifecycleReconciler, SlotTransition
from aura_monitor.report import ScheduleReporter, to_utc_iso
from aura_monitor.scheduler import (
    EpochWindow,
    epoch_of,
    own_slots,
    project_time,
    schedule_fingerprint,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PollState:
    """In-memory state carried between iterations; never persisted."""

    authority_fingerprint: bytes | None = None
    authority_len: int = 0
    author_present: bool | None = None
    epoch: int | None = None
    schedule_fingerprint: bytes | None = None
    identity_reported: bool = False
    last_best_hash: str | None = None
    last_finalized_number: int = 0


@dataclass(frozen=True)
class IterationResult:
    """What one iteration observed and did; drives the sleep computation."""

    window: EpochWindow
    latest_slot: int
    slot_duration_ms: int
    best_number: int
    authorities_changed: bool
    schedule_written: bool
    own_slots: tuple[int, ...] = ()
    transitions: tuple[SlotTransition, ...] = ()


@dataclass
class PollContext:
    """Collaborators and fixed parameters of a monitoring run."""

    rpc: ChainRpc
    identity: ValidatorIdentity
    epoch_size: int
    epoch_override: int | None = None
    slots_override: int | None = None
    store: Database | None = None
    reporter: ScheduleReporter | None = None
    reconciler: LifecycleReconciler = field(init=False)

    def __post_init__(self) -> None:
        self.reconciler = LifecycleReconciler(self.rpc, self.identity.public_key, self.store)

    @property
    def epoch_pinned(self) -> bool:
        return self.epoch_override is not None


def _best_head(rpc: ChainRpc) -> tuple[str, Header]:
    best_hash = rpc.block_hash()
    if best_hash is None:
        raise TransportError("no best head", method="chain_getBlockHash")
    best_header = rpc.header(best_hash)
    if best_header is None:
        raise TransportError("no best header", method="chain_getHeader")
    return best_hash, best_header


def run_iteration(ctx: PollContext, state: PollState) -> tuple[PollState, IterationResult]:
    """
    Run one iteration against the chain and return (next state, result).
    TransportError and StoreError propagate to the caller.
    """
    rpc = ctx.rpc
    reporter = ctx.reporter
    identity = ctx.identity

    authority_set = AuthoritySetTracker(rpc).fetch()
    auth_fp = authority_set.fingerprint
    auth_changed = changed(state.authority_fingerprint, state.authority_len, auth_fp, len(authority_set))
    if auth_changed and state.authority_fingerprint is not None:
        logger.info(
            "authority_set_changed",
            prev_len=state.authority_len,
            new_len=len(authority_set),
            fingerprint=authority_set.fingerprint_hex,
        )
        if reporter:
            reporter.authority_set_changed(state.authority_len, len(authority_set))

    slot_duration_ms = rpc.slot_duration()
    if slot_duration_ms <= 0:
        raise TransportError(f"invalid slot duration {slot_duration_ms}", method="state_call")
    now_ms = rpc.timestamp_now() or 0
    best_hash, best_header = _best_head(rpc)

    # The digest slot is authoritative; timestamp / slot duration is only a fallback.
    latest_slot = best_header.aura_slot
    if latest_slot is None:
        latest_slot = now_ms // slot_duration_ms

    epoch = ctx.epoch_override if ctx.epoch_override is not None else epoch_of(latest_slot, ctx.epoch_size)
    window = EpochWindow.for_epoch(epoch, ctx.epoch_size, ctx.slots_override)
    epoch_switched = state.epoch != epoch
    epoch_log = bind_epoch(epoch)

    if auth_changed or epoch_switched:
        epoch_log.info(
            "epoch_observed",
            start_slot=window.start_slot,
            end_slot=window.end_slot,
            authority_set_len=len(authority_set),
            latest_slot=latest_slot,
        )
        if reporter:
            reporter.epoch(epoch, window.start_slot, window.end_slot)
        if ctx.store is not None:
            ctx.store.upsert_epoch_info(
                EpochInfo(
                    epoch=epoch,
                    start_slot=window.start_slot,
                    end_slot=window.end_slot,
                    authority_set_hash=authority_set.fingerprint_hex,
                    authority_set_len=len(authority_set),
                )
            )

    if not state.identity_reported and reporter:
        reporter.identity(identity.hex)

    next_state = replace(
        state,
        authority_fingerprint=auth_fp,
        authority_len=len(authority_set),
        identity_reported=True,
        epoch=epoch,
    )

    author_present = authority_set.contains(identity.public_key)
    mine: list[int] = []
    schedule_written = False
    if not author_present:
        if auth_changed or epoch_switched or state.author_present is not False:
            epoch_log.warning(
                "author_not_in_authorities",
                author=identity.hex,
                authorities=len(authority_set),
            )
    else:
        mine = own_slots(authority_set.keys, identity.public_key, window.start_slot, window.scan_len)
        my_fp = schedule_fingerprint(mine)
        if my_fp != state.schedule_fingerprint or epoch_switched:
            next_state = replace(next_state, schedule_fingerprint=my_fp)
            planned_ms = [
                (slot, project_time(slot, latest_slot, now_ms, slot_duration_ms)) for slot in mine
            ]
            if ctx.store is not None:
                ctx.store.insert_schedule(epoch, [(slot, to_utc_iso(ms)) for slot, ms in planned_ms])
            schedule_written = True
            epoch_log.info(
                "schedule_computed",
                own_slots=len(mine),
                scan_len=window.scan_len,
                first_slot=mine[0] if mine else None,
            )
            if reporter:
                for slot, ms in planned_ms:
                    reporter.slot(slot, ms)
    next_state = replace(next_state, author_present=author_present)

    transitions: list[SlotTransition] = []
    last_best_hash, minted = ctx.reconciler.on_best_head(
        state.last_best_hash, best_hash, best_header, authority_set.keys
    )
    if minted is not None:
        transitions.append(minted)

    last_finalized = state.last_finalized_number
    finalized_hash = rpc.finalized_head()
    if finalized_hash is not None:
        finalized_header = rpc.header(finalized_hash)
        if finalized_header is not None:
            last_finalized, finalized = ctx.reconciler.on_finality(
                last_finalized, finalized_header.number
            )
            transitions.extend(finalized)

    next_state = replace(
        next_state,
        last_best_hash=last_best_hash,
        last_finalized_number=last_finalized,
    )
    result = IterationResult(
        window=window,
        latest_slot=latest_slot,
        slot_duration_ms=slot_duration_ms,
        best_number=best_header.number,
        authorities_changed=auth_changed,
        schedule_written=schedule_written,
        own_slots=tuple(mine),
        transitions=tuple(transitions),
    )
    return next_state, result


# Seconds added past the estimated epoch boundary before re-checking.
BOUNDARY_MARGIN_SEC = 1


def compute_sleep_seconds(
    result: IterationResult,
    watch_seconds: int,
    *,
    epoch_pinned: bool = False,
) -> int:
    """
    Sleep before the next iteration.

    Pinned epoch: always watch_seconds. Otherwise the estimated time to the
    next epoch boundary, capped at watch_seconds so a wrong estimate or a
    stalled node cannot delay the next check for long.
    """
    if epoch_pinned:
        return watch_seconds
    delta_slots = max(result.window.next_epoch_start - result.latest_slot, 1)
    delta_ms = delta_slots * result.slot_duration_ms
    if delta_ms > watch_seconds * 1000:
        return watch_seconds
    return max(delta_ms // 1000 + BOUNDARY_MARGIN_SEC, 1)
