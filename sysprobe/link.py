"""Link speeds of PCIe, SATA and USB connections as reported by sysfs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Generic, TypeVar

log = logging.getLogger(__name__)

PCI_DEVICES_ROOT = "/sys/bus/pci/devices"
ATA_LINK_ROOT = "/sys/class/ata_link"
USB_DEVICES_ROOT = "/sys/bus/usb/devices"

T = TypeVar("T")

_DECIMAL_BIT_UNITS = ("b/s", "kb/s", "Mb/s", "Gb/s", "Tb/s", "Pb/s")


def _format_bits_decimal(bits_per_second: float, places: int) -> str:
    """Format a bit rate with decimal (base 1000) prefixes."""
    value = float(bits_per_second)
    unit = _DECIMAL_BIT_UNITS[0]
    for unit in _DECIMAL_BIT_UNITS:
        if abs(value) < 1000.0 or unit == _DECIMAL_BIT_UNITS[-1]:
            break
        value /= 1000.0
    return f"{value:.{places}f} {unit}"


def _parse_unsigned(text: str) -> int:
    """Parse an unsigned decimal integer without tolerating surrounding whitespace."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    return int(digits)


def _read_trimmed(path: Path) -> str:
    return path.read_text().strip()


def _read_optional(path: Path) -> str | None:
    try:
        return _read_trimmed(path)
    except OSError:
        return None


class PcieSpeed(Enum):
    """PCI Express generation, valued by its display label."""

    PCIE_10 = "PCIe 1.0"
    PCIE_20 = "PCIe 2.0"
    PCIE_30 = "PCIe 3.0"
    PCIE_40 = "PCIe 4.0"
    PCIE_50 = "PCIe 5.0"
    PCIE_60 = "PCIe 6.0"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> PcieSpeed:
        """Parse a sysfs ``*_link_speed`` value such as ``8.0 GT/s PCIe``."""
        try:
            return _PCIE_SPEEDS[text]
        except KeyError:
            raise ValueError(f"Could not parse PCIe speed: '{text}'") from None


_PCIE_SPEEDS: dict[str, PcieSpeed] = {
    "2.5 GT/s PCIe": PcieSpeed.PCIE_10,
    "5.0 GT/s PCIe": PcieSpeed.PCIE_20,
    "8.0 GT/s PCIe": PcieSpeed.PCIE_30,
    "16.0 GT/s PCIe": PcieSpeed.PCIE_40,
    "32.0 GT/s PCIe": PcieSpeed.PCIE_50,
    "64.0 GT/s PCIe": PcieSpeed.PCIE_60,
}


class SataSpeed(Enum):
    """SATA revision, valued by its display label."""

    SATA_150 = "SATA-150"
    SATA_300 = "SATA-300"
    SATA_600 = "SATA-600"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> SataSpeed:
        """Parse a sysfs ``sata_spd`` value such as ``6.0 Gbps``."""
        try:
            return _SATA_SPEEDS[text]
        except KeyError:
            raise ValueError(f"Could not parse SATA speed: '{text}'") from None


_SATA_SPEEDS: dict[str, SataSpeed] = {
    "1.5 Gbps": SataSpeed.SATA_150,
    "3.0 Gbps": SataSpeed.SATA_300,
    "6.0 Gbps": SataSpeed.SATA_600,
}


@dataclass(frozen=True)
class UsbSpeed:
    """A USB release together with its signalling rate in Mbit/s.

    USB 1.0 carries no rate of its own; it is always 1.5 Mbit/s.
    """

    version: str
    mbit: int | None = None

    def __str__(self) -> str:
        if self.mbit is None:
            rate = _format_bits_decimal(1.5 * 1_000_000.0, 1)
        else:
            rate = _format_bits_decimal(self.mbit * 1_000_000.0, 0)
        return f"{self.version} ({rate})"

    @classmethod
    def parse(cls, text: str) -> UsbSpeed:
        """Parse a sysfs USB ``speed`` value in Mbit/s."""
        try:
            return _USB_SPEEDS[text]
        except KeyError:
            raise ValueError(f"Could not parse USB speed: '{text}'") from None


_USB_SPEEDS: dict[str, UsbSpeed] = {
    "1.5": UsbSpeed("USB 1.0"),
    "12": UsbSpeed("USB 1.1", 12),
    "480": UsbSpeed("USB 2.0", 480),
    "5000": UsbSpeed("USB 3.0", 5_000),
    "10000": UsbSpeed("USB 3.1", 10_000),
    "20000": UsbSpeed("USB 3.2", 20_000),
    "40000": UsbSpeed("USB4", 40_000),
    "80000": UsbSpeed("USB4 2.0", 80_000),
    "120000": UsbSpeed("USB4 2.0", 120_000),
}


@dataclass(frozen=True)
class PcieLinkData:
    """Generation and lane count of a PCIe link."""

    speed: PcieSpeed
    width: int

    def __str__(self) -> str:
        return f"{self.speed} ×{self.width}"

    @classmethod
    def parse(cls, speed_raw: str, width_raw: str) -> PcieLinkData:
        """Parse the raw sysfs link speed and link width."""
        speed = PcieSpeed.parse(speed_raw)
        try:
            width = _parse_unsigned(width_raw)
        except ValueError as error:
            raise ValueError("Could not parse PCIe width") from error
        return cls(speed=speed, width=width)


@dataclass(frozen=True)
class LinkData(Generic[T]):
    """Current link speed and, where known, the maximum supported one."""

    current: T
    max: T | None = None

    def __str__(self) -> str:
        if self.max is not None and self.current != self.max:
            return f"{self.current} / {self.max}"
        return str(self.current)


class LinkKind(Enum):
    """Bus type of a link."""

    PCIE = "pcie"
    SATA = "sata"
    USB = "usb"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Link:
    """A link of a given bus type and its speed data."""

    kind: LinkKind = LinkKind.UNKNOWN
    data: LinkData | None = None

    def __str__(self) -> str:
        if self.kind is LinkKind.UNKNOWN or self.data is None:
            return "N/A"
        return str(self.data)


@dataclass(frozen=True)
class AtaSlot:
    """Position of a drive on the ATA bus."""

    ata_device: int
    ata_link: int


@dataclass(frozen=True)
class UsbSlot:
    """Position of a drive on the USB bus."""

    usb_bus: int
    usb_device: str


def read_pcie_link_data(path: str | Path) -> LinkData[PcieLinkData]:
    """Read current and maximum PCIe link data from a PCI device directory."""
    path = Path(path)
    log.debug("Reading PCIe link data for %s", path)

    current_speed = _read_trimmed(path / "current_link_speed")
    current_width = _read_trimmed(path / "current_link_width")
    try:
        current = PcieLinkData.parse(current_speed, current_width)
    except ValueError as error:
        raise ValueError("Could not parse PCIE link data") from error

    max_speed = _read_optional(path / "max_link_speed")
    max_width = _read_optional(path / "max_link_width")
    maximum = None
    if max_speed is not None and max_width is not None:
        try:
            maximum = PcieLinkData.parse(max_speed, max_width)
        except ValueError:
            maximum = None
    return LinkData(current=current, max=maximum)


def link_from_pci_slot(
    pci_slot: object, root: str | Path = PCI_DEVICES_ROOT
) -> LinkData[PcieLinkData]:
    """Read the PCIe link data of the device at ``pci_slot``."""
    folder = Path(root) / str(pci_slot)
    if not folder.exists():
        raise FileNotFoundError(f"Could not find PCIe address entry for {pci_slot}")
    return read_pcie_link_data(folder)


def link_from_ata_slot(
    ata_slot: AtaSlot, root: str | Path = ATA_LINK_ROOT
) -> LinkData[SataSpeed]:
    """Read the SATA link speeds of the given ATA slot."""
    log.debug("Reading ATA link data for %r", ata_slot)
    link_path = Path(root) / f"link{ata_slot.ata_link}"

    current_raw = _read_trimmed(link_path / "sata_spd")
    try:
        current = SataSpeed.parse(current_raw)
    except ValueError as error:
        raise ValueError("Could not parse current sata speed") from error

    max_raw = _read_optional(link_path / "sata_spd_max")
    maximum = None
    if max_raw is not None:
        try:
            maximum = SataSpeed.parse(max_raw)
        except ValueError:
            maximum = None
    return LinkData(current=current, max=maximum)


def link_from_usb_slot(
    usb_slot: UsbSlot, root: str | Path = USB_DEVICES_ROOT
) -> LinkData[UsbSpeed]:
    """Read the device speed and the port speed of the given USB slot."""
    log.debug("Reading USB link data for %r", usb_slot)
    bus_path = Path(root) / f"usb{usb_slot.usb_bus}"

    port_raw = _read_optional(bus_path / "speed")
    device_raw = _read_trimmed(bus_path / usb_slot.usb_device / "speed")

    port_speed = None
    if port_raw is not None:
        try:
            port_speed = UsbSpeed.parse(port_raw)
        except ValueError:
            port_speed = None

    try:
        device_speed = UsbSpeed.parse(device_raw)
    except ValueError as error:
        raise ValueError("Could not parse USB device speed") from error
    return LinkData(current=device_speed, max=port_speed)