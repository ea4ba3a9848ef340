"""System memory usage from /proc/meminfo and memory module details from DMI."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .sysfs import FLATPAK_SPAWN, flatpak_app_path, is_flatpak

log = logging.getLogger(__name__)

PROC_MEMINFO = "/proc/meminfo"
DMI_SYSFS_PATH = "/sys/devices/virtual/dmi/id"

BYTES_IN_GIB = 1_073_741_824
_U64_MAX = (1 << 64) - 1

_RE_CONFIGURED_SPEED = re.compile(r"Configured Memory Speed: (\d+) MT/s")
_RE_SPEED = re.compile(r"Speed: (\d+) MT/s")
_RE_FORM_FACTOR = re.compile(r"Form Factor: (.+)")
_RE_TYPE = re.compile(r"Type: (.+)")
_RE_TYPE_DETAIL = re.compile(r"Type Detail: (.+)")
_RE_SIZE = re.compile(r"Size: (\d+) GB")

_RE_MEM_TOTAL = re.compile(r"MemTotal:\s*(\d*) kB")
_RE_MEM_AVAILABLE = re.compile(r"MemAvailable:\s*(\d*) kB")
_RE_SWAP_TOTAL = re.compile(r"SwapTotal:\s*(\d*) kB")
_RE_SWAP_FREE = re.compile(r"SwapFree:\s*(\d*) kB")

_RE_NUM_MEMORY_DEVICES = re.compile(r"MEMORY_ARRAY_NUM_DEVICES=(\d*)")

_OUT_OF_SPEC = "<OUT OF SPEC>"


def _parse_unsigned(text: str, bits: int = 64) -> int:
    """Parse an unsigned decimal integer bounded to ``bits`` bits."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(digits)
    if value >= 1 << bits:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _try_unsigned(text: str | None, bits: int = 64) -> int | None:
    if text is None:
        return None
    try:
        return _parse_unsigned(text, bits)
    except ValueError:
        return None


def _meminfo_kib(regex: re.Pattern[str], name: str, text: str) -> int:
    match = regex.search(text)
    if match is None:
        raise ValueError(f"{name} not found in meminfo")
    try:
        kib = _parse_unsigned(match.group(1))
    except ValueError as error:
        raise ValueError(f"unable to parse {name}") from error
    return min(kib * 1024, _U64_MAX)


@dataclass(frozen=True)
class MemoryData:
    """Memory and swap totals in bytes."""

    total_mem: int
    available_mem: int
    total_swap: int
    free_swap: int

    @classmethod
    def from_meminfo(cls, text: str) -> MemoryData:
        """Parse the contents of /proc/meminfo."""
        data = cls(
            total_mem=_meminfo_kib(_RE_MEM_TOTAL, "MemTotal", text),
            available_mem=_meminfo_kib(_RE_MEM_AVAILABLE, "MemAvailable", text),
            total_swap=_meminfo_kib(_RE_SWAP_TOTAL, "SwapTotal", text),
            free_swap=_meminfo_kib(_RE_SWAP_FREE, "SwapFree", text),
        )
        log.debug("Gathered memory data: %r", data)
        return data

    @classmethod
    def read(cls, path: str | Path = PROC_MEMINFO) -> MemoryData:
        """Read and parse the meminfo file at ``path``."""
        log.debug("Reading %s", path)
        return cls.from_meminfo(Path(path).read_text())


@dataclass(frozen=True)
class MemoryDevice:
    """A memory slot and the module installed in it, if any."""

    speed_mts: int | None = None
    form_factor: str | None = None
    type: str | None = None
    type_detail: str | None = None
    size: int | None = None
    installed: bool = False


def _group(regex: re.Pattern[str], text: str) -> str | None:
    match = regex.search(text)
    return match.group(1) if match else None


def parse_dmidecode(dmi: str) -> list[MemoryDevice]:
    """Parse the output of ``dmidecode -t 17 -q``."""
    devices = []
    for block in dmi.split("\n\n"):
        if not block:
            continue
        speed = _group(_RE_CONFIGURED_SPEED, block)
        if speed is None:
            speed = _group(_RE_SPEED, block)
        size = _group(_RE_SIZE, block)
        device = MemoryDevice(
            speed_mts=int(speed) if speed is not None else None,
            form_factor=_group(_RE_FORM_FACTOR, block),
            type=_group(_RE_TYPE, block),
            type_detail=_group(_RE_TYPE_DETAIL, block),
            size=int(size) * BYTES_IN_GIB if size is not None else None,
            installed=_RE_SPEED.search(block) is not None,
        )
        log.debug("Found memory device: %r", device)
        devices.append(device)
    return devices


def _device_field(index: int, suffix: str, value_pattern: str, dmi: str) -> str | None:
    regex = re.compile(rf"MEMORY_DEVICE_{index}_{suffix}={value_pattern}")
    return _group(regex, dmi)


def parse_virtual_dmi(dmi: str) -> list[MemoryDevice]:
    """Parse the output of ``udevadm info -p /sys/devices/virtual/dmi/id``."""
    count = _try_unsigned(_group(_RE_NUM_MEMORY_DEVICES, dmi)) or 0
    devices = []
    for index in range(count):
        present = _try_unsigned(_device_field(index, "PRESENT", r"(\d)", dmi))
        installed = present != 0

        speed = None
        if installed:
            raw_speed = _device_field(index, "CONFIGURED_SPEED_MTS", r"(\d*)", dmi)
            if raw_speed is None:
                raw_speed = _device_field(index, "SPEED_MTS", r"(\d*)", dmi)
            speed = _try_unsigned(raw_speed, bits=32)

        memory_type = _device_field(index, "TYPE", "(.*)", dmi)
        if memory_type == _OUT_OF_SPEC:
            memory_type = None

        device = MemoryDevice(
            speed_mts=speed,
            form_factor=_device_field(index, "FORM_FACTOR", "(.*)", dmi),
            type=memory_type,
            type_detail=_device_field(index, "TYPE_DETAIL", "(.*)", dmi),
            size=_try_unsigned(_device_field(index, "SIZE", r"(\d*)", dmi)),
            installed=installed,
        )
        log.debug("Found memory device: %r", device)
        devices.append(device)
    return devices


def virtual_dmi() -> list[MemoryDevice]:
    """Query udevadm for DMI memory information; empty if that is not possible."""
    args = ["udevadm", "info", "-p", DMI_SYSFS_PATH]
    if is_flatpak():
        args = [FLATPAK_SPAWN, "--host", *args]
    try:
        result = subprocess.run(args, capture_output=True, check=False)
        output = result.stdout.decode("utf-8")
    except (OSError, UnicodeDecodeError):
        output = ""
    return parse_virtual_dmi(output)


def get_memory_devices() -> list[MemoryDevice]:
    """Return the memory devices, from udevadm or else unprivileged dmidecode."""
    devices = virtual_dmi()
    if devices:
        log.debug("Memory information obtained using udevadm")
        return devices
    result = subprocess.run(
        ["dmidecode", "-t", "17", "-q"], capture_output=True, check=False
    )
    if result.returncode == 1 or result.returncode < 0:
        log.debug("Unable to get memory information without elevated privileges")
        raise PermissionError("no permission")
    log.debug("Memory information obtained using dmidecode (unprivileged)")
    return parse_dmidecode(result.stdout.decode("utf-8"))


def pkexec_dmidecode() -> list[MemoryDevice]:
    """Run dmidecode with elevated privileges through pkexec."""
    log.debug("Using pkexec to get memory information (dmidecode)")
    if is_flatpak():
        try:
            app_path = flatpak_app_path()
        except (OSError, LookupError, ValueError):
            app_path = ""
        args = [
            FLATPAK_SPAWN,
            "--host",
            "/usr/bin/pkexec",
            "--disable-internal-agent",
            f"{app_path}/bin/dmidecode",
            "-t",
            "17",
            "-q",
        ]
    else:
        args = ["pkexec", "--disable-internal-agent", "dmidecode", "-t", "17", "-q"]
    result = subprocess.run(args, capture_output=True, check=False)
    log.debug("Memory information obtained using dmidecode (privileged)")
    return parse_dmidecode(result.stdout.decode("utf-8"))