"""
Slot lifecycle reconciliation.

Advances stored own-slot rows from schedule to mint (new best head in an own
slot) and to finality (finalized range scan), never backwards.
"""

from aura_monitor.reconciler.lifecycle import LifecycleReconciler, SlotTransition

__all__ = ["LifecycleReconciler", "SlotTransition"]
