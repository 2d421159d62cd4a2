"""
Minimal SCALE decoding for the values the monitor reads from a node.

Covers compact integers, little-endian u64, Vec<[u8; 32]> (the Aura
authority list), and DigestItem::PreRuntime entries carrying the Aura slot.
Purely structural; raises ValueError on malformed input.
"""

from __future__ import annotations

import struct

AURA_ENGINE_ID = b"aura"
# DigestItem variant index for PreRuntime(ConsensusEngineId, Vec<u8>)
DIGEST_PRE_RUNTIME = 6
PUBLIC_KEY_LEN = 32


def hex_to_bytes(value: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex string."""
    raw = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(raw)


def decode_compact(data: bytes, offset: int = 0) -> tuple[int, int]:
    """
    Decode a SCALE compact integer at offset.
    Returns (value, next_offset).
    """
    if offset >= len(data):
        raise ValueError("compact: unexpected end of input")
    first = data[offset]
    mode = first & 0b11
    if mode == 0:
        return first >> 2, offset + 1
    if mode == 1:
        if offset + 2 > len(data):
            raise ValueError("compact: truncated two-byte form")
        return int.from_bytes(data[offset:offset + 2], "little") >> 2, offset + 2
    if mode == 2:
        if offset + 4 > len(data):
            raise ValueError("compact: truncated four-byte form")
        return int.from_bytes(data[offset:offset + 4], "little") >> 2, offset + 4
    # Big-integer mode: upper six bits + 4 = byte length
    length = (first >> 2) + 4
    start = offset + 1
    if start + length > len(data):
        raise ValueError("compact: truncated big-integer form")
    return int.from_bytes(data[start:start + length], "little"), start + length


def decode_u64(data: bytes, offset: int = 0) -> int:
    if offset + 8 > len(data):
        raise ValueError("u64: need 8 bytes")
    return struct.unpack_from("<Q", data, offset)[0]


def decode_public_keys(data: bytes) -> list[bytes]:
    """Decode Vec<[u8; 32]> (e.g. the result of AuraApi_authorities)."""
    count, pos = decode_compact(data)
    end = pos + count * PUBLIC_KEY_LEN
    if end != len(data):
        raise ValueError(
            f"authorities: expected {count} keys ({end} bytes), got {len(data)} bytes"
        )
    return [data[i:i + PUBLIC_KEY_LEN] for i in range(pos, end, PUBLIC_KEY_LEN)]


def aura_slot_from_log(log: bytes) -> int | None:
    """Return the slot from one encoded DigestItem if it is an Aura PreRuntime entry."""
    if len(log) < 5 or log[0] != DIGEST_PRE_RUNTIME or log[1:5] != AURA_ENGINE_ID:
        return None
    try:
        length, pos = decode_compact(log, 5)
    except ValueError:
        return None
    payload = log[pos:pos + length]
    if len(payload) < 8:
        return None
    return decode_u64(payload)


def aura_slot_from_logs(logs: list[bytes]) -> int | None:
    """
    Return the Aura slot from a header's digest logs, or None if absent.
    The first Aura PreRuntime entry wins; other digest items are ignored.
    """
    for log in logs:
        if len(log) >= 5 and log[0] == DIGEST_PRE_RUNTIME and log[1:5] == AURA_ENGINE_ID:
            return aura_slot_from_log(log)
    return None
