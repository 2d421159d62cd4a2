"""
Monitor settings and validation.

Responsibilities:
- Hold every startup parameter of a monitoring run in one dataclass.
- Validate values in __post_init__ and raise ConfigError before any RPC use.
- Build defaults from environment variables (see aura_monitor.config.env).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from aura_monitor.config import env
from aura_monitor.core.exceptions import ConfigError

COLOR_MODES = ("auto", "always", "never")
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0


@dataclass
class MonitorSettings:
    """
    Settings for one monitoring run.

    epoch / slots: operator overrides. epoch pins the scanned epoch (and fixes
    the watch interval); slots changes how many slots are scanned from the
    epoch start, independently of epoch_size.
    """

    keystore_path: str | Path
    rpc_url: str = env.DEFAULT_RPC_URL
    epoch_size: int = env.DEFAULT_EPOCH_SIZE
    epoch: int | None = None
    slots: int | None = None
    watch_seconds: int = env.DEFAULT_WATCH_SECONDS
    tz: str = env.DEFAULT_TZ
    color: str = "auto"
    db_path: str | Path = Path(env.DEFAULT_DB_PATH)
    no_store: bool = False
    watch: bool = False
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC

    def __post_init__(self) -> None:
        if not str(self.keystore_path).strip():
            raise ConfigError("keystore path must be non-empty")
        if not self.rpc_url or not self.rpc_url.strip():
            raise ConfigError("rpc url must be non-empty")
        self.rpc_url = env.normalize_rpc_url(self.rpc_url)
        if not self.rpc_url.startswith(("http://", "https://")):
            raise ConfigError(f"unsupported rpc url scheme: {self.rpc_url!r}")
        if self.epoch_size <= 0:
            raise ConfigError(f"epoch size must be positive, got {self.epoch_size}")
        if self.epoch is not None and self.epoch < 0:
            raise ConfigError(f"epoch must be non-negative, got {self.epoch}")
        if self.slots is not None and self.slots <= 0:
            raise ConfigError(f"slots must be positive, got {self.slots}")
        if self.watch_seconds <= 0:
            raise ConfigError(f"watch seconds must be positive, got {self.watch_seconds}")
        if self.color not in COLOR_MODES:
            raise ConfigError(f"color must be one of {', '.join(COLOR_MODES)}, got {self.color!r}")
        if self.request_timeout_sec <= 0:
            raise ConfigError("request timeout must be positive")
        self.keystore_path = Path(self.keystore_path)
        self.db_path = Path(self.db_path)

    @property
    def epoch_pinned(self) -> bool:
        return self.epoch is not None


def get_settings(**overrides: Any) -> MonitorSettings:
    """
    Return settings built from the environment (.env included).

    Keyword overrides (the CLI flags) replace environment values; an override
    of None counts as not given. Raises ConfigError when no keystore path is
    available or an AURA_* numeric variable that is actually used does not parse.
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    keystore_path = given.pop("keystore_path", None) or env.get_keystore_path()
    if not keystore_path:
        raise ConfigError("keystore path is required: pass --keystore-path or set AURA_KEYSTORE_PATH")
    values: dict[str, Any] = {
        "rpc_url": env.get_rpc_url(),
        "tz": env.get_output_tz(),
        "db_path": env.get_db_path(),
    }
    try:
        if "epoch_size" not in given:
            values["epoch_size"] = env.get_int_env("AURA_EPOCH_SIZE", env.DEFAULT_EPOCH_SIZE)
        if "watch_seconds" not in given:
            values["watch_seconds"] = env.get_int_env("AURA_WATCH_SECONDS", env.DEFAULT_WATCH_SECONDS)
    except ValueError as e:
        raise ConfigError(f"invalid numeric environment value: {e}") from e
    values.update(given)
    return MonitorSettings(keystore_path=keystore_path, **values)
