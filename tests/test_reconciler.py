"""
Tests for the slot lifecycle reconciler (mint and finality triggers).

Uses the scripted FakeChainRpc: block n sits at slot n - 1 and carries the
chain timestamp slot * 6000 ms; with authorities [A, B, C], B owns slots 1, 4, 7, ...
"""

from __future__ import annotations

from aura_monitor.database import SlotStatus
from aura_monitor.reconciler import LifecycleReconciler
from conftest import KEY_A, KEY_B, KEY_C, block_hash_for

AUTHS = (KEY_A, KEY_B, KEY_C)
PLANNED = "1970-01-01T00:00:00+00:00"


def _schedule(db, *slots):
    db.insert_schedule(0, [(s, PLANNED) for s in slots])


def test_mint_own_slot(fake_rpc, db):
    fake_rpc.add_chain(5)
    _schedule(db, 1, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[5]
    last, transition = rec.on_best_head(None, best_hash, header, AUTHS)
    assert last == best_hash
    assert transition.slot == 4
    assert transition.status is SlotStatus.MINT
    assert transition.applied is True
    row = db.get_slot(4)
    assert row.status is SlotStatus.MINT
    assert row.block_number == 5
    assert row.block_hash == best_hash
    assert row.produced_time_utc == "1970-01-01T00:00:24+00:00"


def test_mint_other_authority_slot_is_ignored(fake_rpc, db):
    fake_rpc.add_chain(4)
    _schedule(db, 1, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[4]  # slot 3 belongs to A
    last, transition = rec.on_best_head(None, best_hash, header, AUTHS)
    assert last == best_hash
    assert transition is None
    assert all(r.status is SlotStatus.SCHEDULE for r in db.get_slots_for_epoch(0))


def test_same_head_is_not_reprocessed(fake_rpc, db):
    fake_rpc.add_chain(5)
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[5]
    rec.on_best_head(None, best_hash, header, AUTHS)
    fake_rpc.calls.clear()
    last, transition = rec.on_best_head(best_hash, best_hash, header, AUTHS)
    assert (last, transition) == (best_hash, None)
    assert fake_rpc.calls == []


def test_repeated_mint_after_restart_is_noop(fake_rpc, db):
    """Losing the last-head marker re-applies the transition without changing the row."""
    fake_rpc.add_chain(5)
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[5]
    rec.on_best_head(None, best_hash, header, AUTHS)
    before = db.get_slot(4)
    _, transition = rec.on_best_head(None, best_hash, header, AUTHS)
    assert transition.applied is False
    assert db.get_slot(4) == before


def test_head_without_aura_digest(fake_rpc, db):
    h = fake_rpc.add_block(9, None)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    last, transition = rec.on_best_head(None, h, fake_rpc.headers[h], AUTHS)
    assert last == h
    assert transition is None


def test_mint_uses_current_authority_set(fake_rpc, db):
    """Ownership is checked against the set passed in, not the one used for the schedule."""
    fake_rpc.add_chain(5)
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[5]
    # Under [A, C] slot 4 belongs to A, so no mint even though the row exists
    _, transition = rec.on_best_head(None, best_hash, header, (KEY_A, KEY_C))
    assert transition is None
    assert db.get_slot(4).status is SlotStatus.SCHEDULE


def test_produced_time_falls_back_to_local_clock(fake_rpc, db):
    h = fake_rpc.add_block(5, 4)  # no chain timestamp recorded
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db, now_ms=lambda: 1_000)
    rec.on_best_head(None, h, fake_rpc.headers[h], AUTHS)
    assert db.get_slot(4).produced_time_utc == "1970-01-01T00:00:01+00:00"


def test_finality_scans_range_in_order(fake_rpc, db):
    fake_rpc.add_chain(14)
    _schedule(db, 10, 13)  # blocks 11 and 14
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    last, transitions = rec.on_finality(10, 13)
    assert last == 13
    assert fake_rpc.called_numbers("block_hash") == [11, 12, 13]
    assert [t.slot for t in transitions] == [10]
    assert db.get_slot(10).status is SlotStatus.FINALITY
    assert db.get_slot(10).block_number == 11
    assert db.get_slot(13).status is SlotStatus.SCHEDULE


def test_finality_skips_unresolvable_block(fake_rpc, db):
    """11, 12, 13 attempted; 12 fails; 11 and 13 still processed; marker reaches 13."""
    fake_rpc.add_chain(13)
    _schedule(db, 10, 11, 12)  # slots of blocks 11, 12, 13
    fake_rpc.failing_headers.add(12)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    last, transitions = rec.on_finality(10, 13)
    assert fake_rpc.called_numbers("block_hash") == [11, 12, 13]
    assert last == 13
    assert [t.slot for t in transitions] == [10, 12]
    assert db.get_slot(10).status is SlotStatus.FINALITY
    assert db.get_slot(11).status is SlotStatus.SCHEDULE
    assert db.get_slot(12).status is SlotStatus.FINALITY


def test_finality_skips_missing_hash(fake_rpc, db):
    fake_rpc.add_chain(3)
    fake_rpc.unresolvable.add(2)
    del fake_rpc.blocks[3]
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    last, transitions = rec.on_finality(0, 3)
    assert last == 3
    assert transitions == []


def test_finality_promotes_minted_slot(fake_rpc, db):
    fake_rpc.add_chain(5)
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    best_hash, header = fake_rpc.blocks[5]
    rec.on_best_head(None, best_hash, header, AUTHS)
    last, transitions = rec.on_finality(0, 5)
    assert last == 5
    assert [(t.slot, t.applied) for t in transitions] == [(4, True)]
    row = db.get_slot(4)
    assert row.status is SlotStatus.FINALITY
    assert row.block_hash == block_hash_for(5)


def test_finality_leaves_finalized_rows_alone(fake_rpc, db):
    fake_rpc.add_chain(5)
    _schedule(db, 4)
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    rec.on_finality(0, 5)
    before = db.get_slot(4)
    fake_rpc.calls.clear()
    # Replay after a restart: no timestamp lookups and no row changes
    last, transitions = rec.on_finality(0, 5)
    assert last == 5
    assert transitions == []
    assert ("timestamp_now", block_hash_for(5)) not in fake_rpc.calls
    assert db.get_slot(4) == before


def test_finality_not_advanced(fake_rpc, db):
    rec = LifecycleReconciler(fake_rpc, KEY_B, db)
    assert rec.on_finality(7, 7) == (7, [])
    assert rec.on_finality(7, 5) == (7, [])
    assert fake_rpc.calls == []


def test_without_store_markers_still_advance(fake_rpc):
    fake_rpc.add_chain(5)
    rec = LifecycleReconciler(fake_rpc, KEY_B, None)
    best_hash, header = fake_rpc.blocks[5]
    last, transition = rec.on_best_head(None, best_hash, header, AUTHS)
    assert last == best_hash
    assert transition.applied is False
    assert transition.produced_time_utc is None
    assert rec.on_finality(0, 5) == (5, [])
