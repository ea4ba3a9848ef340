"""Batteries found in /sys/class/power_supply."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

PATH_SYSFS = "/sys/class/power_supply"

# Some firmware (e.g. Lenovo Yoga 6 13ALC7) reports names as hex byte sequences.
_HEX_ENCODED = re.compile(r"(?:0x[0-9a-fA-F]{2}\s*)*")

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def _parse_unsigned(text: str, bits: int | None = None) -> int:
    """Parse an unsigned decimal integer, optionally bounded to ``bits`` bits."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(digits)
    if bits is not None and value >= 1 << bits:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _parse_signed(text: str) -> int:
    """Parse a signed decimal integer."""
    if text.startswith("-"):
        return -_parse_unsigned(text[1:]) if not text[1:].startswith("+") else _fail(text)
    return _parse_unsigned(text)


def _fail(text: str) -> int:
    raise ValueError(f"invalid integer: {text!r}")


def _ratio(numerator: int, denominator: int) -> float:
    """Divide like floating point hardware does: x/0 is inf, 0/0 is NaN."""
    if denominator == 0:
        return math.nan if numerator == 0 else math.inf
    return numerator / denominator


def _try(func: Callable[[], T]) -> T | None:
    try:
        return func()
    except (OSError, ValueError):
        return None


def untangle_weird_encoding(text: str) -> str:
    """Decode names some manufacturers store as whitespace separated hex bytes."""
    if _HEX_ENCODED.fullmatch(text) is None:
        return text
    data = bytearray()
    for token in text.split():
        try:
            byte = int(token.replace("0x", ""), 16)
        except ValueError:
            continue
        if not 0 <= byte <= 0xFF:
            continue
        # NUL bytes are turned into spaces so that consumers do not choke on them
        data.append(0x20 if byte == 0 else byte)
    return bytes(data).decode("utf-8", errors="replace")


class State(Enum):
    """Charging state of a battery, valued by its human readable label."""

    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    EMPTY = "Empty"
    FULL = "Full"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> State:
        """Parse the contents of a sysfs ``status`` file."""
        return _STATES.get(_ascii_lower(text), cls.UNKNOWN)


_STATES: dict[str, State] = {
    "charging": State.CHARGING,
    "discharging": State.DISCHARGING,
    "empty": State.EMPTY,
    "full": State.FULL,
}


class Technology(Enum):
    """Battery chemistry, valued by its human readable label."""

    NICKEL_METAL_HYDRIDE = "Nickel-Metal Hydride"
    NICKEL_CADMIUM = "Nickel-Cadmium"
    NICKEL_ZINC = "Nickel-Zinc"
    LEAD_ACID = "Lead-Acid"
    LITHIUM_ION = "Lithium-Ion"
    LITHIUM_IRON_PHOSPHATE = "Lithium Iron Phosphate"
    LITHIUM_POLYMER = "Lithium Polymer"
    RECHARGEABLE_ALKALINE_MANGANESE = "Rechargeable Alkaline Managanese"
    UNKNOWN = "N/A"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> Technology:
        """Parse the contents of a sysfs ``technology`` file."""
        return _TECHNOLOGIES.get(_ascii_lower(text), cls.UNKNOWN)


_TECHNOLOGIES: dict[str, Technology] = {
    "nimh": Technology.NICKEL_METAL_HYDRIDE,
    "nicd": Technology.NICKEL_CADMIUM,
    "nizn": Technology.NICKEL_ZINC,
    "pb": Technology.LEAD_ACID,
    "pbac": Technology.LEAD_ACID,
    "li-i": Technology.LITHIUM_ION,
    "li-ion": Technology.LITHIUM_ION,
    "lion": Technology.LITHIUM_ION,
    "life": Technology.LITHIUM_IRON_PHOSPHATE,
    "lip": Technology.LITHIUM_POLYMER,
    "lipo": Technology.LITHIUM_POLYMER,
    "li-poly": Technology.LITHIUM_POLYMER,
    "ram": Technology.RECHARGEABLE_ALKALINE_MANGANESE,
}


def _read_trimmed_unsigned(path: Path, bits: int | None = None) -> int:
    return _parse_unsigned(path.read_text().strip(), bits)


@dataclass
class Battery:
    """A battery power supply found in sysfs."""

    sysfs_path: Path
    manufacturer: str | None = None
    model_name: str | None = None
    design_capacity: float | None = None
    technology: Technology = Technology.UNKNOWN

    def __post_init__(self) -> None:
        self.sysfs_path = Path(self.sysfs_path)

    @classmethod
    def get_sysfs_paths(cls, root: str | Path = PATH_SYSFS) -> list[Path]:
        """Return the sysfs paths of all system batteries below ``root``."""
        return [
            entry
            for entry in sorted(Path(root).iterdir())
            if cls.is_valid_power_supply(entry)
        ]

    @staticmethod
    def is_valid_power_supply(path: str | Path) -> bool:
        """Whether ``path`` is a battery that does not belong to a peripheral device."""
        path = Path(path)
        try:
            is_battery = (path / "type").read_text().strip() == "Battery"
        except (OSError, ValueError):
            is_battery = False
        try:
            not_device = (path / "scope").read_text().strip() != "Device"
        except (OSError, ValueError):
            not_device = True
        return is_battery and not_device

    @classmethod
    def from_sysfs(cls, sysfs_path: str | Path) -> Battery:
        """Build a battery from the information found in its sysfs directory."""
        sysfs_path = Path(sysfs_path)
        log.debug("Creating Battery object of %s", sysfs_path)

        def read_name(name: str) -> str | None:
            raw = _try((sysfs_path / name).read_text)
            if raw is None:
                return None
            return untangle_weird_encoding(raw.replace("\n", ""))

        raw_technology = _try((sysfs_path / "technology").read_text) or ""
        design = _try(
            lambda: _read_trimmed_unsigned(sysfs_path / "energy_full_design")
        )

        battery = cls(
            sysfs_path=sysfs_path,
            manufacturer=read_name("manufacturer"),
            model_name=read_name("model_name"),
            design_capacity=design / 1_000_000.0 if design is not None else None,
            technology=Technology.parse(raw_technology.replace("\n", "")),
        )
        log.debug("Created Battery object of %s: %r", sysfs_path, battery)
        return battery

    def charge(self) -> float:
        """Charge as a fraction, from ``capacity`` or else from energy values."""
        try:
            percent = _read_trimmed_unsigned(self.sysfs_path / "capacity", bits=8)
        except (OSError, ValueError):
            return self.charge_from_energy()
        return percent / 100.0

    def charge_from_energy(self) -> float:
        """Charge as a fraction computed from ``energy_now`` and ``energy_full``."""
        energy_now = _try(lambda: _read_trimmed_unsigned(self.sysfs_path / "energy_now"))
        energy_full = _try(lambda: _read_trimmed_unsigned(self.sysfs_path / "energy_full"))
        if energy_now is None or energy_full is None:
            raise ValueError("no charge from energy information found")
        return _ratio(energy_now, energy_full)

    def health(self) -> float:
        """Full capacity relative to the design capacity."""
        for current, design in (
            ("energy_full", "energy_full_design"),
            ("charge_full", "charge_full_design"),
        ):
            full = _try(lambda: _read_trimmed_unsigned(self.sysfs_path / current))
            full_design = _try(lambda: _read_trimmed_unsigned(self.sysfs_path / design))
            if full is not None and full_design is not None:
                return _ratio(full, full_design)
        raise ValueError("no health information found")

    def power_usage(self) -> float:
        """Power draw in watts."""
        try:
            microwatts = _parse_signed((self.sysfs_path / "power_now").read_text().strip())
        except (OSError, ValueError):
            return self._power_usage_from_voltage_and_current()
        return abs(microwatts) / 1_000_000.0

    def _power_usage_from_voltage_and_current(self) -> float:
        voltage = _read_trimmed_unsigned(self.sysfs_path / "voltage_now") / 1_000_000.0
        current = _read_trimmed_unsigned(self.sysfs_path / "current_now") / 1_000_000.0
        return abs(voltage * current)

    def state(self) -> State:
        """Current charging state."""
        return State.parse((self.sysfs_path / "status").read_text().replace("\n", ""))

    def charge_cycles(self) -> int:
        """Number of charge cycles."""
        return _read_trimmed_unsigned(self.sysfs_path / "cycle_count")


@dataclass
class BatteryData:
    """A snapshot of a battery and its current readings."""

    inner: Battery
    charge: float | None
    power_usage: float | None
    health: float | None
    state: State | None
    charge_cycles: int | None

    @classmethod
    def from_path(cls, path: str | Path) -> BatteryData:
        """Gather the data of the battery at ``path``."""
        log.debug("Gathering battery data for %s", path)
        inner = Battery.from_sysfs(path)
        data = cls(
            inner=inner,
            charge=_try(inner.charge),
            power_usage=_try(inner.power_usage),
            health=_try(inner.health),
            state=_try(inner.state),
            charge_cycles=_try(inner.charge_cycles),
        )
        log.debug("Gathered battery data for %s: %r", path, data)
        return data