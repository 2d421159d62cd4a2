"""
Data models for chain RPC output.

Normalized block header: number, parent hash, and raw digest logs. Built from
chain_getHeader JSON; the Aura slot is derived from the digest on demand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from aura_monitor.chain.scale import aura_slot_from_logs, hex_to_bytes


@dataclass(frozen=True)
class Header:
    """Block header as returned by chain_getHeader."""

    number: int
    parent_hash: str
    digest_logs: tuple[bytes, ...] = field(default_factory=tuple)

    @property
    def aura_slot(self) -> int | None:
        """Slot from the Aura pre-runtime digest; None if the header has none."""
        return aura_slot_from_logs(list(self.digest_logs))

    @classmethod
    def from_rpc(cls, item: dict[str, Any]) -> "Header":
        """Build from a chain_getHeader result object (number is hex-encoded)."""
        number = item["number"]
        logs = (item.get("digest") or {}).get("logs") or []
        return cls(
            number=int(number, 16) if isinstance(number, str) else int(number),
            parent_hash=item.get("parentHash", ""),
            digest_logs=tuple(hex_to_bytes(log) for log in logs),
        )
