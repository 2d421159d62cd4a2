"""
Human-readable schedule output: colors, output timezone, and report lines.

Timezones: "UTC", "local", a fixed offset "+HH:MM"/"-HH:MM", or an IANA zone
like "Asia/Dubai" (resolved with pytz). Colors: auto (stdout is a TTY),
always, never.
"""

from __future__ import annotations

import re
import sys
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TextIO

import pytz

from aura_monitor.core.exceptions import ConfigError

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")

ANSI_CYAN = "36"
ANSI_YELLOW = "33"
ANSI_MAGENTA = "35"
ANSI_BLUE = "34"
ANSI_GREEN = "32"
ANSI_DIM = "90"


class Colors:
    """ANSI color wrapping; a no-op when disabled."""

    def __init__(self, mode: str = "auto", stream: TextIO | None = None) -> None:
        if mode == "always":
            self.enabled = True
        elif mode == "never":
            self.enabled = False
        else:
            self.enabled = (stream or sys.stdout).isatty()

    def wrap(self, text: str, code: str) -> str:
        if not self.enabled:
            return text
        return f"\x1b[{code}m{text}\x1b[0m"

    def epoch(self, text: str) -> str:
        return self.wrap(text, ANSI_CYAN)

    def range(self, text: str) -> str:
        return self.wrap(text, ANSI_YELLOW)

    def author(self, text: str) -> str:
        return self.wrap(text, ANSI_MAGENTA)

    def slot(self, text: str) -> str:
        return self.wrap(text, ANSI_BLUE)

    def time(self, text: str) -> str:
        return self.wrap(text, ANSI_GREEN)

    def dim(self, text: str) -> str:
        return self.wrap(text, ANSI_DIM)


def parse_output_tz(value: str) -> tzinfo | None:
    """
    Parse an output timezone setting. Returns None for the system local zone.
    Raises ConfigError on anything else that is not recognized.
    """
    s = value.strip()
    if s.lower() == "utc":
        return timezone.utc
    if s.lower() == "local":
        return None
    m = _OFFSET_RE.match(s)
    if m:
        sign, hh, mm = m.group(1), int(m.group(2)), int(m.group(3))
        if hh > 23 or mm > 59:
            raise ConfigError(f"invalid offset '{s}'")
        delta = timedelta(hours=hh, minutes=mm)
        return timezone(delta if sign == "+" else -delta)
    if "/" in s:
        try:
            return pytz.timezone(s)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigError(f"unknown timezone '{s}'") from e
    raise ConfigError(f"invalid --tz '{s}' (use UTC | local | +HH:MM | -HH:MM | Area/City)")


def format_ts(ts_ms: int, tz: tzinfo | None = timezone.utc) -> str:
    """ISO 8601 rendering of a millisecond timestamp in tz (None = local zone)."""
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    if tz is None:
        return dt.astimezone().isoformat()
    return dt.astimezone(tz).isoformat()


def to_utc_iso(ts_ms: int) -> str:
    return format_ts(ts_ms, timezone.utc)


class ScheduleReporter:
    """Writes epoch headers, the identity line, and per-slot planned times."""

    def __init__(
        self,
        out_tz: tzinfo | None = timezone.utc,
        colors: Colors | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._out_tz = out_tz
        self._stream = stream or sys.stdout
        self._colors = colors or Colors("never")

    def _print(self, line: str = "") -> None:
        print(line, file=self._stream)

    def authority_set_changed(self, prev_len: int, new_len: int) -> None:
        self._print()
        self._print(f"authority set changed (len {prev_len} -> {new_len})")

    def epoch(self, epoch: int, start_slot: int, end_slot: int) -> None:
        c = self._colors
        self._print()
        self._print(
            f"epoch={c.epoch(str(epoch))} / start_slot={c.range(str(start_slot))} "
            f"/ end_slot={c.range(str(end_slot))}"
        )

    def identity(self, author_hex: str) -> None:
        self._print(f"author={self._colors.author(author_hex)}")
        self._print()

    def slot(self, slot: int, planned_ms: int) -> None:
        c = self._colors
        local = c.time(format_ts(planned_ms, self._out_tz))
        utc = c.dim(to_utc_iso(planned_ms))
        self._print(f"slot {c.slot(str(slot))}: {local} (UTC {utc})")
