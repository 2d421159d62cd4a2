# Authority set tracking: fetch, fingerprint, change detection.

from aura_monitor.authority.tracker import (
    AuthoritySet,
    AuthoritySetTracker,
    changed,
    fingerprint,
)

__all__ = [
    "AuthoritySet",
    "AuthoritySetTracker",
    "changed",
    "fingerprint",
]
