# Validator identity: keystore scan, single-key resolution, node confirmation.

from aura_monitor.identity.keystore import (
    ValidatorIdentity,
    confirm_identity,
    list_keystore,
    load_identity,
    parse_keystore_name,
    resolve_identity,
)

__all__ = [
    "ValidatorIdentity",
    "confirm_identity",
    "list_keystore",
    "load_identity",
    "parse_keystore_name",
    "resolve_identity",
]
