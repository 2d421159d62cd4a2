"""
Validator identity resolution from a Substrate keystore directory.

Keystore files are named <4-byte key type><32-byte public key> in hex. For
Aura the key type is "aura" (0x61757261). Exactly one distinct Aura key must
be present; the resolver never guesses between several. The resolved key is
then confirmed with the node (author_hasKey) before the monitor runs.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from aura_monitor.chain.rpc import AURA_KEY_TYPE, ChainRpc
from aura_monitor.core.exceptions import IdentityError, TransportError
from aura_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

AURA_KEY_TYPE_HEX = "61757261"
KEY_TYPE_HEX_LEN = 8
PUBLIC_KEY_HEX_LEN = 64
_HEX_DIGITS = frozenset(string.hexdigits.lower())


@dataclass(frozen=True)
class ValidatorIdentity:
    """Resolved Aura public key; fixed for the lifetime of the process."""

    public_key: bytes

    def __post_init__(self) -> None:
        if len(self.public_key) != PUBLIC_KEY_HEX_LEN // 2:
            raise IdentityError(
                f"expected 32-byte public key, got {len(self.public_key)} bytes"
            )

    @property
    def hex(self) -> str:
        return "0x" + self.public_key.hex()

    @classmethod
    def from_hex(cls, value: str) -> "ValidatorIdentity":
        raw = value.strip()
        raw = raw[2:] if raw.lower().startswith("0x") else raw
        try:
            return cls(bytes.fromhex(raw))
        except ValueError as e:
            raise IdentityError(f"invalid public key hex {value!r}: {e}") from e


def parse_keystore_name(name: str) -> str | None:
    """
    Return the 0x-prefixed Aura public key encoded in a keystore filename,
    or None when the name is not an Aura key file.

    Matching is case-insensitive and tolerates a leading 0x.
    """
    hex_name = name.strip().lower()
    if hex_name.startswith("0x"):
        hex_name = hex_name[2:]
    if len(hex_name) != KEY_TYPE_HEX_LEN + PUBLIC_KEY_HEX_LEN:
        return None
    if not hex_name.startswith(AURA_KEY_TYPE_HEX):
        return None
    pub_hex = hex_name[KEY_TYPE_HEX_LEN:]
    if not all(c in _HEX_DIGITS for c in pub_hex):
        return None
    return "0x" + pub_hex


def resolve_identity(filenames: Iterable[str], *, source: str = "keystore") -> ValidatorIdentity:
    """
    Resolve the single Aura identity from a keystore listing.

    Non-matching names are ignored. Raises IdentityError when no Aura key is
    found or when more than one distinct key is present.
    """
    found = sorted({key for key in (parse_keystore_name(n) for n in filenames) if key})
    if not found:
        raise IdentityError(
            f"no Aura key found in {source}: expected a file named like "
            f"{AURA_KEY_TYPE_HEX}<pubkey32bytes> (hex)"
        )
    if len(found) > 1:
        raise IdentityError(
            f"multiple Aura keys found in {source}: {found}. Keep only one Aura key, "
            "or use a dedicated keystore path."
        )
    return ValidatorIdentity.from_hex(found[0])


def list_keystore(keystore_path: str | Path) -> list[str]:
    """Return names of regular files in the keystore directory."""
    path = Path(keystore_path)
    try:
        return sorted(entry.name for entry in path.iterdir() if entry.is_file())
    except OSError as e:
        raise IdentityError(f"failed to read keystore path '{path}': {e}") from e


def load_identity(keystore_path: str | Path) -> ValidatorIdentity:
    """List the keystore directory and resolve the Aura identity from it."""
    return resolve_identity(list_keystore(keystore_path), source=f"keystore '{keystore_path}'")


def confirm_identity(rpc: ChainRpc, identity: ValidatorIdentity) -> None:
    """
    Fail closed unless the node reports holding the key for the Aura role.
    TransportError from the query propagates unchanged.
    """
    try:
        has = rpc.has_key(identity.hex, AURA_KEY_TYPE)
    except TransportError:
        logger.error("identity_confirm_rpc_failed", author=identity.hex)
        raise
    if not has:
        raise IdentityError(
            f"Refusing to run: detected Aura key {identity.hex} is not present in "
            "this node's keystore (author_hasKey=false)."
        )
    logger.info("identity_confirmed", author=identity.hex)
