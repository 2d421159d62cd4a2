# Monitor worker: one polling iteration, adaptive sleep, watch loop, CLI.

from aura_monitor.agent_worker.poll import (
    IterationResult,
    PollContext,
    PollState,
    compute_sleep_seconds,
    run_iteration,
)

__all__ = [
    "IterationResult",
    "PollContext",
    "PollState",
    "compute_sleep_seconds",
    "run_iteration",
]
