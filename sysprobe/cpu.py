"""CPU information from lscpu, /proc/stat and sysfs."""

from __future__ import annotations

import functools
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

PROC_STAT = "/proc/stat"
CPU_SYSFS = "/sys/devices/system/cpu"
HWMON_ROOT = "/sys/class/hwmon"
THERMAL_ROOT = "/sys/class/thermal"

# Checked in order of preference.
KNOWN_HWMONS: tuple[str, ...] = ("zenpower", "coretemp", "k10temp")
KNOWN_THERMAL_ZONES: tuple[str, ...] = ("cpu-thermal", "x86_pkg_temp", "acpitz")

_U64_MAX = (1 << 64) - 1

_RE_LSCPU_MODEL_NAME = re.compile(r"Model name:\s*(.*)")
_RE_LSCPU_ARCHITECTURE = re.compile(r"Architecture:\s*(.*)")
_RE_LSCPU_CPUS = re.compile(r"CPU\(s\):\s*(.*)")
_RE_LSCPU_SOCKETS = re.compile(r"Socket\(s\):\s*(.*)")
_RE_LSCPU_CORES = re.compile(r"Core\(s\) per socket:\s*(.*)")
_RE_LSCPU_VIRTUALIZATION = re.compile(r"Virtualization:\s*(.*)")
_RE_LSCPU_MAX_MHZ = re.compile(r"CPU max MHz:\s*(.*)")

_PROC_STAT_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)
_RE_PROC_STAT = re.compile(
    r"cpu\d+" + "".join(rf" *(?P<{name}>\d*)" for name in _PROC_STAT_FIELDS)
)


def _parse_unsigned(text: str, bits: int | None = 64) -> int:
    """Parse an unsigned decimal integer without tolerating surrounding whitespace."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(digits)
    if bits is not None and value >= 1 << bits:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    """Parse a float strictly: no surrounding whitespace and no digit separators."""
    if not text or text.strip() != text or "_" in text:
        raise ValueError(f"invalid float: {text!r}")
    return float(text)


def _lines(text: str) -> list[str]:
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _capture(regex: re.Pattern[str], text: str) -> str | None:
    match = regex.search(text)
    return match.group(1) if match else None


def trade_mark_symbols(text: str) -> str:
    """Replace (R), (tm) and (TM) with their typographic symbols."""
    return text.replace("(R)", "®").replace("(tm)", "™").replace("(TM)", "™")


@dataclass
class CpuInfo:
    """Static information about the processor as reported by lscpu."""

    model_name: str | None = None
    architecture: str | None = None
    logical_cpus: int | None = None
    physical_cpus: int | None = None
    sockets: int | None = None
    virtualization: str | None = None
    max_speed: float | None = None

    @classmethod
    def parse_lscpu(cls, lscpu_output: str) -> CpuInfo:
        """Build a CpuInfo from the text output of ``lscpu``."""

        def unsigned(regex: re.Pattern[str]) -> int | None:
            raw = _capture(regex, lscpu_output)
            if raw is None:
                return None
            try:
                return _parse_unsigned(raw)
            except ValueError:
                return None

        model = _capture(_RE_LSCPU_MODEL_NAME, lscpu_output)
        sockets = unsigned(_RE_LSCPU_SOCKETS)
        cores = unsigned(_RE_LSCPU_CORES)
        physical = None
        if cores is not None:
            physical = min(cores * (sockets if sockets is not None else 1), _U64_MAX)

        max_speed = None
        raw_mhz = _capture(_RE_LSCPU_MAX_MHZ, lscpu_output)
        if raw_mhz is not None:
            try:
                max_speed = _parse_float(raw_mhz) * 1_000_000.0
            except ValueError:
                max_speed = None

        return cls(
            model_name=trade_mark_symbols(model) if model is not None else None,
            architecture=_capture(_RE_LSCPU_ARCHITECTURE, lscpu_output),
            logical_cpus=unsigned(_RE_LSCPU_CPUS),
            physical_cpus=physical,
            sockets=sockets,
            virtualization=_capture(_RE_LSCPU_VIRTUALIZATION, lscpu_output),
            max_speed=max_speed,
        )

    @classmethod
    def get(cls) -> CpuInfo:
        """Run ``lscpu`` and parse its output."""
        env = dict(os.environ, LC_ALL="C")
        try:
            result = subprocess.run(
                ["lscpu"], env=env, capture_output=True, check=False
            )
        except OSError as error:
            raise OSError("unable to run lscpu, is util-linux installed?") from error
        return cls.parse_lscpu(result.stdout.decode("utf-8"))


def get_cpu_freq(core: int, root: str | Path = CPU_SYSFS) -> int:
    """Return the current frequency of logical CPU ``core`` in Hz."""
    path = Path(root) / f"cpu{core}" / "cpufreq" / "scaling_cur_freq"
    try:
        raw = path.read_text()
    except OSError as error:
        log.debug("Unable to get CPU frequency for core %s: %s", core, error)
        raise
    try:
        khz = _parse_unsigned(raw.replace("\n", ""))
    except ValueError as error:
        raise ValueError("can't parse scaling_cur_freq") from error
    freq = khz * 1000
    log.debug("Frequency of core %s: %s Hz", core, freq)
    return freq


def parse_proc_stat_line(line: str) -> tuple[int, int]:
    """Parse one per-CPU line of /proc/stat into ``(idle_time, total_time)``."""
    match = _RE_PROC_STAT.search(line)
    if match is None:
        raise ValueError("using regex to parse /proc/stat failed")
    try:
        idle = _parse_unsigned(match.group("idle"))
        iowait = _parse_unsigned(match.group("iowait"))
    except ValueError as error:
        raise ValueError("unable to get idle time") from error

    total = 0
    for name in _PROC_STAT_FIELDS:
        try:
            total += _parse_unsigned(match.group(name))
        except ValueError:
            continue
    return min(idle + iowait, _U64_MAX), total


def parse_proc_stat(stat: str) -> list[tuple[int, int] | None]:
    """Parse the per-CPU lines of /proc/stat; unparsable lines become ``None``."""
    results: list[tuple[int, int] | None] = []
    for line in _lines(stat)[1:]:
        if not line.startswith("cpu"):
            continue
        try:
            results.append(parse_proc_stat_line(line))
        except ValueError:
            results.append(None)
    return results


def get_cpu_usage(path: str | Path = PROC_STAT) -> list[tuple[int, int] | None]:
    """Cumulative ``(idle_time, total_time)`` per logical CPU since boot."""
    log.debug("Reading %s", path)
    try:
        raw = Path(path).read_text()
    except OSError:
        raw = ""
    return parse_proc_stat(raw)


def _first_temp_input(base: Path) -> Path | None:
    return next(iter(sorted(base.glob("temp*_input"))), None)


def _search_hwmons(root: Path, names: tuple[str, ...]) -> Path | None:
    sensors: dict[str, Path] = {}
    for path in sorted(root.glob("hwmon*")):
        try:
            name = (path / "name").read_text().rstrip()
        except OSError:
            continue
        first = _first_temp_input(path)
        if first is not None:
            sensors[name] = first
    for name in names:
        if name in sensors:
            log.debug("CPU temperature sensor located at %s (%s, hwmon)", sensors[name], name)
            return sensors[name]
    return None


def _search_thermal_zones(root: Path, types: tuple[str, ...]) -> Path | None:
    zones: dict[str, Path] = {}
    for path in sorted(root.glob("thermal_zone*")):
        try:
            zone_type = (path / "type").read_text().rstrip()
        except OSError:
            continue
        zones[zone_type] = path / "temp"
    for zone_type in types:
        if zone_type in zones:
            log.debug(
                "CPU temperature sensor located at %s (%s, thermal zone)",
                zones[zone_type],
                zone_type,
            )
            return zones[zone_type]
    return None


def find_temperature_sensor(
    hwmon_root: str | Path = HWMON_ROOT, thermal_root: str | Path = THERMAL_ROOT
) -> Path | None:
    """Locate the sysfs file holding the CPU temperature, preferring hwmons."""
    sensor = _search_hwmons(Path(hwmon_root), KNOWN_HWMONS)
    if sensor is None:
        sensor = _search_thermal_zones(Path(thermal_root), KNOWN_THERMAL_ZONES)
    if sensor is None:
        log.warning("No CPU temperature sensor found!")
    return sensor


@functools.lru_cache(maxsize=None)
def _cpu_temperature_path() -> Path | None:
    return find_temperature_sensor()


def read_sysfs_thermal(path: str | Path) -> float:
    """Read a millidegree Celsius sysfs file and return degrees Celsius."""
    path = Path(path)
    raw = path.read_text()
    try:
        millidegrees = _parse_float(raw.replace("\n", ""))
    except ValueError as error:
        raise ValueError(f"unable to parse {path}") from error
    return millidegrees / 1000.0


def get_temperature() -> float:
    """Return the CPU temperature in degrees Celsius."""
    path = _cpu_temperature_path()
    if path is None:
        raise LookupError("no CPU temperature sensor found")
    return read_sysfs_thermal(path)


@dataclass
class CpuData:
    """A snapshot of CPU usage counters, temperature and frequencies."""

    new_thread_usages: list[tuple[int, int] | None] = field(default_factory=list)
    temperature: float | None = None
    frequencies: list[int | None] = field(default_factory=list)

    @classmethod
    def collect(cls, logical_cpus: int) -> CpuData:
        """Gather the current data for ``logical_cpus`` logical CPUs."""
        log.debug("Gathering CPU data")
        try:
            temperature: float | None = get_temperature()
        except (OSError, ValueError, LookupError):
            temperature = None

        frequencies: list[int | None] = []
        for core in range(logical_cpus):
            try:
                frequencies.append(get_cpu_freq(core))
            except (OSError, ValueError):
                frequencies.append(None)

        data = cls(
            new_thread_usages=get_cpu_usage(),
            temperature=temperature,
            frequencies=frequencies,
        )
        log.debug("Gathered CPU data: %r", data)
        return data