"""
Monitor runtime: startup, watch loop, and CLI entrypoint.

Startup opens the store, resolves the Aura identity from the keystore, and
confirms it with the node before any iteration runs. One-shot mode runs a
single iteration; watch mode repeats with the adaptive interval from
compute_sleep_seconds(). Any RPC, store, or identity failure ends the run;
transient RPC errors are not retried across iterations.

Usage: python -m aura_monitor --keystore-path /path/to/keystore [--watch]
"""

from __future__ import annotations

import argparse
import signal
import sys
import time
from typing import Any, Callable, Sequence

from aura_monitor.agent_worker.poll import (
    PollContext,
    PollState,
    compute_sleep_seconds,
    run_iteration,
)
from aura_monitor.chain.rpc import ChainRpc, SubstrateRpcClient
from aura_monitor.config.settings import COLOR_MODES, MonitorSettings, get_settings
from aura_monitor.core.exceptions import MonitorError
from aura_monitor.database import Database, get_database
from aura_monitor.identity import confirm_identity, load_identity
from aura_monitor.monitor_logging import get_logger
from aura_monitor.report import Colors, ScheduleReporter, parse_output_tz

logger = get_logger(__name__)


def _interruptible_sleep(seconds: float, should_stop: Callable[[], bool]) -> None:
    """Sleep in short slices so a stop request is honored promptly."""
    deadline = time.monotonic() + seconds
    while not should_stop() and time.monotonic() < deadline:
        sleep_for = min(1.0, max(0.0, deadline - time.monotonic()))
        if sleep_for > 0:
            time.sleep(sleep_for)


def run_loop(
    settings: MonitorSettings,
    *,
    rpc: ChainRpc | None = None,
    store: Database | None = None,
    reporter: ScheduleReporter | None = None,
    sleep: Callable[[float, Callable[[], bool]], None] = _interruptible_sleep,
) -> PollState:
    """
    Run the monitor until one-shot completion or shutdown; return the last state.

    rpc / store / reporter default to the real collaborators built from
    settings. Errors propagate; the caller decides the exit code.
    """
    out_tz = parse_output_tz(settings.tz)
    if store is None and not settings.no_store:
        store = get_database(settings.db_path)
    identity = load_identity(settings.keystore_path)
    if reporter is None:
        reporter = ScheduleReporter(out_tz=out_tz, colors=Colors(settings.color))

    owned_client: SubstrateRpcClient | None = None
    if rpc is None:
        owned_client = SubstrateRpcClient(settings.rpc_url, timeout_sec=settings.request_timeout_sec)
        rpc = owned_client

    shutdown = False

    def request_shutdown(*args: Any, **kwargs: Any) -> None:
        nonlocal shutdown
        shutdown = True

    previous_handler: Any = None
    try:
        previous_handler = signal.signal(signal.SIGTERM, request_shutdown)
    except (AttributeError, ValueError):
        # Not in the main thread, or unsupported platform
        pass

    state = PollState()
    iteration = 0
    try:
        confirm_identity(rpc, identity)
        ctx = PollContext(
            rpc=rpc,
            identity=identity,
            epoch_size=settings.epoch_size,
            epoch_override=settings.epoch,
            slots_override=settings.slots,
            store=None if settings.no_store else store,
            reporter=reporter,
        )
        logger.info(
            "monitor_started",
            rpc_url=settings.rpc_url,
            author=identity.hex,
            epoch_size=settings.epoch_size,
            watch=settings.watch,
            store=None if settings.no_store else str(settings.db_path),
        )
        while not shutdown:
            iteration += 1
            state, result = run_iteration(ctx, state)
            if not settings.watch:
                break
            sleep_sec = compute_sleep_seconds(
                result, settings.watch_seconds, epoch_pinned=settings.epoch_pinned
            )
            logger.debug(
                "monitor_iteration_done",
                iteration=iteration,
                epoch=result.window.epoch,
                latest_slot=result.latest_slot,
                transitions=len(result.transitions),
                sleep_sec=sleep_sec,
            )
            sleep(sleep_sec, lambda: shutdown)
    finally:
        if owned_client is not None:
            owned_client.close()
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)
    logger.info("monitor_stopped", iterations=iteration)
    return state


def build_parser() -> argparse.ArgumentParser:
    """
    Argument parser for the CLI. Flags left unset default to None so that
    get_settings() fills them from the environment (.env included).
    """
    parser = argparse.ArgumentParser(
        prog="aura-monitor",
        description="Track the Aura slots of this node's validator key: schedule, mint, finality.",
    )
    parser.add_argument(
        "--rpc-url",
        "--ws",
        dest="rpc_url",
        help="Node RPC endpoint (http(s):// or ws(s)://). Env: AURA_RPC_URL, default http://127.0.0.1:9944.",
    )
    parser.add_argument(
        "--keystore-path",
        help="Node keystore directory; the Aura public key is detected from it. Env: AURA_KEYSTORE_PATH.",
    )
    parser.add_argument("--epoch-size", type=int, help="Slots per epoch. Env: AURA_EPOCH_SIZE, default 1200.")
    parser.add_argument("--epoch", type=int, help="Pin the epoch to scan.")
    parser.add_argument(
        "--slots",
        type=int,
        help="Number of slots to scan from the epoch start (default: epoch size).",
    )
    parser.add_argument(
        "--watch-seconds",
        type=int,
        help="Poll interval ceiling in watch mode. Env: AURA_WATCH_SECONDS, default 30.",
    )
    parser.add_argument(
        "--tz",
        help='Output timezone: "UTC", "local", "+09:00"/"-05:00", or an IANA zone like "Asia/Dubai". Env: AURA_TZ.',
    )
    parser.add_argument("--color", choices=COLOR_MODES, default="auto")
    parser.add_argument("--db", dest="db_path", help="SQLite DB path. Env: AURA_DB_PATH, default aura_schedule.sqlite.")
    parser.add_argument("--no-store", action="store_true", help="Do not write to SQLite.")
    parser.add_argument("--watch", action="store_true", help="Keep polling instead of running once.")
    return parser


def settings_from_args(args: argparse.Namespace) -> MonitorSettings:
    """CLI flags on top of environment defaults; raises ConfigError on invalid values."""
    return get_settings(**vars(args))


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint: parse args, run the monitor, map failures to exit codes."""
    try:
        args = build_parser().parse_args(argv)
        settings = settings_from_args(args)
        run_loop(settings)
        return 0
    except KeyboardInterrupt:
        logger.info("monitor_shutdown_signal")
        return 0
    except MonitorError as e:
        logger.error("runtime_fatal", error=str(e), error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
