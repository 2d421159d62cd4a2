"""
Authority set tracker.

Fetches the ordered Aura authority list and derives a content fingerprint
(SHA-256 over the ordered concatenation of raw keys). Fingerprint plus length
is the change identity; order is significant because it defines round-robin
slot assignment.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Sequence

from aura_monitor.chain.rpc import ChainRpc


def fingerprint(keys: Sequence[bytes]) -> bytes:
    """SHA-256 over the ordered concatenation of each key's raw bytes."""
    hasher = hashlib.sha256()
    for key in keys:
        hasher.update(key)
    return hasher.digest()


def changed(
    prev_fingerprint: bytes | None,
    prev_len: int,
    new_fingerprint: bytes,
    new_len: int,
) -> bool:
    """True iff there is no previous observation or fingerprint or length differ."""
    return prev_fingerprint is None or prev_fingerprint != new_fingerprint or prev_len != new_len


@dataclass(frozen=True)
class AuthoritySet:
    """Ordered authority public keys as observed at one point in time."""

    keys: tuple[bytes, ...]

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def fingerprint(self) -> bytes:
        return fingerprint(self.keys)

    @property
    def fingerprint_hex(self) -> str:
        return "0x" + self.fingerprint.hex()

    def contains(self, public_key: bytes) -> bool:
        return public_key in self.keys


class AuthoritySetTracker:
    """Reads the current authority set through the chain RPC capability."""

    def __init__(self, rpc: ChainRpc) -> None:
        self._rpc = rpc

    def fetch(self) -> AuthoritySet:
        """Fetch the current authority set. TransportError propagates."""
        return AuthoritySet(tuple(self._rpc.authorities()))
