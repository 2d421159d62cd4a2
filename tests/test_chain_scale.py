"""
Tests for SCALE decoding helpers and header parsing.
"""

from __future__ import annotations

import struct

import pytest

from aura_monitor.chain.models import Header
from aura_monitor.chain.scale import (
    aura_slot_from_logs,
    decode_compact,
    decode_public_keys,
    decode_u64,
    hex_to_bytes,
)
from conftest import KEY_A, KEY_B, aura_log


@pytest.mark.parametrize(
    "encoded,value",
    [
        (bytes([0x00]), 0),
        (bytes([0x04]), 1),
        (bytes([0xFC]), 63),
        (bytes([0x01, 0x01]), 64),
        (bytes([0x02, 0x00, 0x01, 0x00]), 16384),
        (bytes([0x03, 0x00, 0x00, 0x00, 0x40]), 1 << 30),
    ],
)
def test_decode_compact(encoded, value):
    assert decode_compact(encoded) == (value, len(encoded))


def test_decode_compact_truncated():
    with pytest.raises(ValueError):
        decode_compact(bytes([0x01]))
    with pytest.raises(ValueError):
        decode_compact(b"")


def test_decode_u64():
    assert decode_u64(struct.pack("<Q", 1_700_000_000_000)) == 1_700_000_000_000
    with pytest.raises(ValueError):
        decode_u64(b"\x00" * 4)


def test_decode_public_keys():
    data = bytes([2 << 2]) + KEY_A + KEY_B
    assert decode_public_keys(data) == [KEY_A, KEY_B]
    assert decode_public_keys(bytes([0])) == []
    with pytest.raises(ValueError):
        decode_public_keys(bytes([2 << 2]) + KEY_A)


def test_aura_slot_from_logs():
    seal = bytes([5]) + b"aura" + bytes([4 << 2]) + b"\x01\x02\x03\x04"
    babe = bytes([6]) + b"BABE" + bytes([8 << 2]) + struct.pack("<Q", 99)
    assert aura_slot_from_logs([seal, babe, aura_log(281_234_567)]) == 281_234_567
    assert aura_slot_from_logs([seal, babe]) is None
    assert aura_slot_from_logs([]) is None


def test_header_from_rpc():
    raw = {
        "parentHash": "0x" + "11" * 32,
        "number": "0x1a2b",
        "stateRoot": "0x" + "22" * 32,
        "extrinsicsRoot": "0x" + "33" * 32,
        "digest": {"logs": ["0x" + aura_log(42).hex()]},
    }
    header = Header.from_rpc(raw)
    assert header.number == 0x1A2B
    assert header.parent_hash == "0x" + "11" * 32
    assert header.aura_slot == 42


def test_header_without_digest():
    header = Header.from_rpc({"number": "0x0", "parentHash": "0x00"})
    assert header.aura_slot is None


def test_hex_to_bytes():
    assert hex_to_bytes("0x0102") == b"\x01\x02"
    assert hex_to_bytes("0102") == b"\x01\x02"
