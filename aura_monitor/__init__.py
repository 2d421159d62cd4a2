"""
Aura slot monitor: passive schedule and lifecycle tracker for one validator.

Resolves the node's Aura key, computes which slots of the current epoch belong
to it, and records whether those slots were minted and finalized. Modular
layout: chain RPC, identity, authority tracking, schedule computation,
lifecycle reconciliation, persistence, and the polling worker.
"""

__version__ = "0.1.0"
