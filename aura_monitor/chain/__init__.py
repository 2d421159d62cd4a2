"""
Substrate chain access package.

Narrow RPC capability (ChainRpc) consumed by the monitor, its JSON-RPC
implementation over HTTP, header models, and the SCALE decoding helpers
needed to read authorities, timestamps, and Aura digest slots.
"""

from aura_monitor.chain.models import Header
from aura_monitor.chain.rpc import ChainRpc, SubstrateRpcClient
from aura_monitor.chain.scale import aura_slot_from_logs

__all__ = [
    "ChainRpc",
    "Header",
    "SubstrateRpcClient",
    "aura_slot_from_logs",
]
