"""
Pytest fixtures for aura_monitor tests.

Temporary SQLite DB, a scripted in-memory chain (FakeChainRpc) implementing
the ChainRpc capability, and a keystore directory holding one Aura key.
"""

from __future__ import annotations

import struct
from typing import Any

import pytest

from aura_monitor.chain.models import Header
from aura_monitor.core.exceptions import TransportError

# Three 32-byte authorities; order defines round-robin assignment.
KEY_A = bytes([0xAA]) * 32
KEY_B = bytes([0xBB]) * 32
KEY_C = bytes([0xCC]) * 32
SLOT_DURATION_MS = 6000


def aura_log(slot: int) -> bytes:
    """Encoded DigestItem::PreRuntime(b"aura", slot.encode())."""
    return bytes([6]) + b"aura" + bytes([8 << 2]) + struct.pack("<Q", slot)


def block_hash_for(number: int) -> str:
    return f"0x{number:064x}"


class FakeChainRpc:
    """
    Scripted chain: blocks keyed by number, one best head, one finalized head.
    Every call is recorded in `calls` as (method, argument).
    """

    def __init__(
        self,
        authorities: list[bytes],
        *,
        slot_duration_ms: int = SLOT_DURATION_MS,
    ) -> None:
        self.authority_keys = list(authorities)
        self.slot_duration_ms = slot_duration_ms
        self.now_ms: int | None = 0
        self.blocks: dict[int, tuple[str, Header]] = {}
        self.headers: dict[str, Header] = {}
        self.block_timestamps: dict[str, int] = {}
        self.best_number: int | None = None
        self.finalized_number: int | None = None
        self.unresolvable: set[int] = set()
        self.failing_headers: set[int] = set()
        self.fail_authorities = False
        self.held_keys: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, Any]] = []

    def add_block(self, number: int, slot: int | None, *, timestamp_ms: int | None = None) -> str:
        h = block_hash_for(number)
        logs = (aura_log(slot),) if slot is not None else ()
        header = Header(number=number, parent_hash=block_hash_for(number - 1), digest_logs=logs)
        self.blocks[number] = (h, header)
        self.headers[h] = header
        if timestamp_ms is not None:
            self.block_timestamps[h] = timestamp_ms
        return h

    def add_chain(self, count: int, *, first_slot: int = 0) -> None:
        """Blocks 1..count at consecutive slots starting at first_slot, with chain timestamps."""
        for number in range(1, count + 1):
            slot = first_slot + number - 1
            self.add_block(number, slot, timestamp_ms=slot * self.slot_duration_ms)
        self.best_number = count

    # --- ChainRpc ---

    def timestamp_now(self, at: str | None = None) -> int | None:
        self.calls.append(("timestamp_now", at))
        if at is None:
            return self.now_ms
        return self.block_timestamps.get(at)

    def slot_duration(self) -> int:
        self.calls.append(("slot_duration", None))
        return self.slot_duration_ms

    def authorities(self, at: str | None = None) -> list[bytes]:
        self.calls.append(("authorities", at))
        if self.fail_authorities:
            raise TransportError("connection refused", method="state_call")
        return list(self.authority_keys)

    def block_hash(self, number: int | None = None) -> str | None:
        self.calls.append(("block_hash", number))
        if number is None:
            number = self.best_number
            if number is None:
                return None
        if number in self.unresolvable:
            raise TransportError(f"cannot resolve block {number}", method="chain_getBlockHash")
        entry = self.blocks.get(number)
        return entry[0] if entry else None

    def header(self, block_hash: str) -> Header | None:
        self.calls.append(("header", block_hash))
        header = self.headers.get(block_hash)
        if header is not None and header.number in self.failing_headers:
            raise TransportError("header lookup failed", method="chain_getHeader")
        return header

    def finalized_head(self) -> str | None:
        self.calls.append(("finalized_head", None))
        if self.finalized_number is None:
            return None
        return self.blocks[self.finalized_number][0]

    def has_key(self, public_key_hex: str, key_type: str) -> bool:
        self.calls.append(("has_key", (public_key_hex, key_type)))
        return (public_key_hex, key_type) in self.held_keys

    def called_numbers(self, method: str) -> list[int]:
        return [arg for (m, arg) in self.calls if m == method and isinstance(arg, int)]


@pytest.fixture
def fake_rpc() -> FakeChainRpc:
    """Chain with authorities [A, B, C] and no blocks yet."""
    return FakeChainRpc([KEY_A, KEY_B, KEY_C])


@pytest.fixture
def db(tmp_path):
    """Schema-initialized SQLite database in a temporary directory."""
    from aura_monitor.database import get_database

    return get_database(tmp_path / "aura_schedule.sqlite")


@pytest.fixture
def keystore_dir(tmp_path):
    """Keystore holding B's Aura key plus unrelated files."""
    ks = tmp_path / "keystore"
    ks.mkdir()
    (ks / ("61757261" + KEY_B.hex())).write_text('"//Bob"')
    (ks / ("6772616e" + KEY_C.hex())).write_text('"gran"')
    (ks / "README").write_text("not a key")
    return ks


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep a developer's AURA_* environment out of the tests."""
    for name in (
        "AURA_RPC_URL",
        "AURA_KEYSTORE_PATH",
        "AURA_DB_PATH",
        "AURA_EPOCH_SIZE",
        "AURA_WATCH_SECONDS",
        "AURA_TZ",
    ):
        monkeypatch.delenv(name, raising=False)
