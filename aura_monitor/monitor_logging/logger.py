"""
structlog setup for the monitor.

Every record carries event_type, level, logger, and an ISO 8601 UTC
timestamp; lifecycle events add slot, epoch, block_number and block_hash.
LOG_FORMAT selects the renderer ("json", the default, or "console") and
LOG_LEVEL the threshold. Records go to stderr because stdout belongs to the
schedule report, so `aura-monitor > schedule.txt` captures only the report.

This module must not import other aura_monitor modules: all of them import it.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

RENDERERS = ("json", "console")


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _renderer_from_env() -> str:
    value = os.getenv("LOG_FORMAT", "json").strip().lower()
    return value if value in RENDERERS else "json"


def _stamp_utc(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # structlog's positional "event" is our event_type, e.g. "slot_minted"
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog() -> None:
    """Install the monitor's processor chain. Called once when this module is imported."""
    if _renderer_from_env() == "console":
        renderer: Any = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _stamp_utc,
            _event_type,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_env()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger for a monitor module, with the module name bound as `logger`.

        log = get_logger(__name__)
        log.info("slot_finalized", slot=4, block_number=5, applied=True)

    renders (JSON) as
    {"applied": true, "block_number": 5, "event_type": "slot_finalized",
     "level": "info", "logger": "aura_monitor.reconciler.lifecycle", "slot": 4,
     "timestamp": "..."}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_epoch(epoch: int) -> structlog.BoundLogger:
    """Logger with the epoch bound, for events about one epoch's schedule."""
    return get_logger("aura_monitor.epoch").bind(epoch=epoch)
