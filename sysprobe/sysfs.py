"""Helpers for reading sysfs/procfs style files and small numeric utilities."""

from __future__ import annotations

import configparser
import logging
import math
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

FLATPAK_INFO = "/.flatpak-info"
FLATPAK_SPAWN = "/usr/bin/flatpak-spawn"

_ASCII_WHITESPACE = " \t\n\r\x0c"


class MalformedUeventError(ValueError):
    """A uevent line does not contain a '=' separator."""


def _lines(text: str) -> list[str]:
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def read_uevent_contents(contents: str) -> dict[str, str]:
    """Parse KEY=VALUE lines of a uevent file into a dictionary."""
    result: dict[str, str] = {}
    for line in _lines(contents):
        key, sep, value = line.partition("=")
        if not sep:
            raise MalformedUeventError(f"malformed line (no '='): {line}")
        result[key] = value
    return result


def read_uevent(path: str | Path) -> dict[str, str]:
    """Read and parse the uevent file at ``path``."""
    path = Path(path)
    log.debug("Reading uevent contents of %s", path)
    return read_uevent_contents(path.read_text())


def read_sysfs(path: str | Path, convert: Callable[[str], T]) -> T:
    """Read a sysfs file, strip trailing whitespace and convert its contents."""
    path = Path(path)
    raw = path.read_text().rstrip(_ASCII_WHITESPACE)
    try:
        return convert(raw)
    except (ValueError, TypeError) as error:
        raise ValueError(f"error parsing file {path}") from error


def finite_or(value: float, fallback: float) -> float:
    """Return ``value`` if it is finite, otherwise ``fallback``."""
    return value if math.isfinite(value) else fallback


def finite_or_default(value: float) -> float:
    """Return ``value`` if it is finite, otherwise ``0.0``."""
    return value if math.isfinite(value) else 0.0


def finite_or_else(value: float, func: Callable[[float], float]) -> float:
    """Return ``value`` if it is finite, otherwise ``func(value)``."""
    return value if math.isfinite(value) else func(value)


def is_flatpak() -> bool:
    """Whether the process runs inside a Flatpak sandbox."""
    running = Path(FLATPAK_INFO).exists()
    log.debug("Running as Flatpak" if running else "Not running as Flatpak")
    return running


def flatpak_app_path(info_path: str | Path = FLATPAK_INFO) -> str:
    """Return the ``app-path`` entry of the Instance section of a flatpak-info file."""
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment]
    text = Path(info_path).read_text()
    parser.read_string(text)
    if not parser.has_section("Instance"):
        raise LookupError(f"unable to find Instance section in {info_path}")
    if not parser.has_option("Instance", "app-path"):
        raise LookupError(f"unable to find app-path in {info_path}")
    return parser.get("Instance", "app-path")


def boot_time(uptime_path: str | Path = "/proc/uptime") -> datetime:
    """Return the local time at which the system booted."""
    now = int(time.time())
    content = Path(uptime_path).read_text()
    first = content.split(" ")[0]
    try:
        uptime = float(first)
    except ValueError as error:
        raise ValueError(f"unable to parse {uptime_path}") from error
    if not math.isfinite(uptime):
        raise ValueError(f"unable to parse {uptime_path}")
    timestamp = now - int(uptime)
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone()