"""
Environment variable loading for the Aura slot monitor.

- AURA_RPC_URL: node RPC endpoint (http(s):// or ws(s)://; default http://127.0.0.1:9944)
- AURA_KEYSTORE_PATH: node keystore directory holding the Aura key file
- AURA_DB_PATH: SQLite file (default aura_schedule.sqlite)
- AURA_EPOCH_SIZE: slots per epoch (default 1200)
- AURA_WATCH_SECONDS: poll interval ceiling in watch mode (default 30)
- AURA_TZ: output timezone (default UTC)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is aura_monitor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_RPC_URL = "http://127.0.0.1:9944"
DEFAULT_DB_PATH = "aura_schedule.sqlite"
DEFAULT_EPOCH_SIZE = 1200
DEFAULT_WATCH_SECONDS = 30
DEFAULT_TZ = "UTC"


def load_monitor_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def normalize_rpc_url(url: str) -> str:
    """
    Map ws:// and wss:// endpoints to http:// and https://.

    Substrate nodes serve HTTP and WebSocket JSON-RPC on the same port.
    """
    url = url.strip().rstrip("/")
    if url.startswith("ws://"):
        return "http://" + url[len("ws://"):]
    if url.startswith("wss://"):
        return "https://" + url[len("wss://"):]
    return url


def get_rpc_url() -> str:
    load_monitor_env()
    return normalize_rpc_url(os.getenv("AURA_RPC_URL") or DEFAULT_RPC_URL)


def get_keystore_path() -> str | None:
    load_monitor_env()
    raw = (os.getenv("AURA_KEYSTORE_PATH") or "").strip()
    return raw or None


def get_db_path() -> str:
    load_monitor_env()
    return (os.getenv("AURA_DB_PATH") or "").strip() or DEFAULT_DB_PATH


def get_int_env(name: str, default: int) -> int:
    """
    Return an integer env var, or default when unset.
    Raises ValueError on a non-integer value; callers turn it into ConfigError.
    """
    load_monitor_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name}={raw!r} is not an integer") from e


def get_output_tz() -> str:
    load_monitor_env()
    return (os.getenv("AURA_TZ") or "").strip() or DEFAULT_TZ
