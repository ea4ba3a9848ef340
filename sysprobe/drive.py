"""Block devices found in /sys/block."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, TypeVar, Union

from .link import (
    AtaSlot,
    Link,
    LinkKind,
    UsbSlot,
    link_from_ata_slot,
    link_from_pci_slot,
    link_from_usb_slot,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

PATH_SYSFS = "/sys/block"
SECTOR_SIZE = 512

_DISK_STAT_FIELDS = (
    "read_ios",
    "read_merges",
    "read_sectors",
    "read_ticks",
    "write_ios",
    "write_merges",
    "write_sectors",
    "write_ticks",
    "in_flight",
    "io_ticks",
    "time_in_queue",
    "discard_ios",
    "discard_merges",
    "discard_sectors",
    "discard_ticks",
    "flush_ios",
    "flush_ticks",
)
_RE_DRIVE = re.compile("".join(rf" *(?P<{name}>[0-9]*)" for name in _DISK_STAT_FIELDS))

_RE_ATA_LINK = re.compile(r"(^link(\d+))$")
_RE_ATA_SLOT = re.compile(r"(^.+?/ata(\d+))/")
_RE_USB_SLOT = re.compile(r"(^.+?/usb(\d+))/(.+?)/")
_RE_PCI_SLOT = re.compile(
    r"(?:([0-9a-fA-F]{1,4}):)?([0-9a-fA-F]{1,2}):([0-9a-fA-F]{1,2})\.([0-7])"
)

# A PCI slot is kept as its normalised address string, e.g. "0000:01:00.0".
SlotType = Union[str, AtaSlot, UsbSlot]


def _parse_unsigned(text: str, bits: int | None = None) -> int:
    """Parse an unsigned decimal integer, optionally bounded to ``bits`` bits."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(digits)
    if bits is not None and value >= 1 << bits:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _try(func: Callable[[], T]) -> T | None:
    try:
        return func()
    except (OSError, ValueError, LookupError):
        return None


def _parse_pci_slot(text: str) -> str:
    match = _RE_PCI_SLOT.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid PCI slot: {text!r}")
    domain, bus, device, function = match.groups()
    return (
        f"{int(domain or '0', 16):04x}:{int(bus, 16):02x}:"
        f"{int(device, 16):02x}.{function}"
    )


def parse_disk_stats(stat: str) -> dict[str, int]:
    """Parse the contents of a block device ``stat`` file into named counters."""
    match = _RE_DRIVE.search(stat)
    stats: dict[str, int] = {}
    if match is None:
        return stats
    for name in _DISK_STAT_FIELDS:
        raw = match.group(name)
        if raw is None:
            continue
        try:
            stats[name] = _parse_unsigned(raw, bits=64)
        except ValueError:
            continue
    return stats


def parse_ata_symlink(symlink: str) -> tuple[str, int]:
    """Return the ata sub path and ata device number found in a sysfs link target."""
    match = _RE_ATA_SLOT.search(symlink)
    if match is None:
        raise ValueError("No ata match found, probably no ata device")
    return match.group(1), _parse_unsigned(match.group(2), bits=8)


def parse_usb_symlink(symlink: str) -> UsbSlot:
    """Return the USB bus and device found in a sysfs link target."""
    match = _RE_USB_SLOT.search(symlink)
    if match is None:
        raise ValueError("No usb match found, probably no usb device")
    try:
        bus = _parse_unsigned(match.group(2), bits=8)
    except ValueError as error:
        raise ValueError("could not match digits in usb") from error
    return UsbSlot(usb_bus=bus, usb_device=match.group(3))


class DriveType(Enum):
    """Kind of a block device, valued by its human readable label."""

    CD_DVD_BLURAY = "CD/DVD/Blu-ray Drive"
    EMMC = "eMMC Storage"
    FLASH = "Flash Storage"
    FLOPPY = "Floppy Drive"
    HDD = "Hard Disk Drive"
    LOOP_DEVICE = "Loop Device"
    MAPPED_DEVICE = "Mapped Device"
    NVME = "NVMe Drive"
    RAID = "Software Raid"
    RAM_DISK = "RAM Disk"
    SSD = "Solid State Drive"
    ZFS_VOLUME = "ZFS Volume"
    ZRAM = "Compressed RAM Disk (zram)"
    UNKNOWN = "N/A"

    def __str__(self) -> str:
        return self.value


# Checked in order: the first matching prefix wins.
_DEVICE_PREFIXES: tuple[tuple[str, DriveType], ...] = (
    ("nvme", DriveType.NVME),
    ("mmc", DriveType.EMMC),
    ("fd", DriveType.FLOPPY),
    ("sr", DriveType.CD_DVD_BLURAY),
    ("zram", DriveType.ZRAM),
    ("md", DriveType.RAID),
    ("loop", DriveType.LOOP_DEVICE),
    ("dm", DriveType.MAPPED_DEVICE),
    ("ram", DriveType.RAM_DISK),
    ("zd", DriveType.ZFS_VOLUME),
)

_ICON_NAMES: dict[DriveType, str] = {
    DriveType.CD_DVD_BLURAY: "cd-dvd-bluray-symbolic",
    DriveType.EMMC: "emmc-symbolic",
    DriveType.FLASH: "flash-storage-symbolic",
    DriveType.FLOPPY: "floppy-symbolic",
    DriveType.HDD: "hdd-symbolic",
    DriveType.LOOP_DEVICE: "loop-device-symbolic",
    DriveType.MAPPED_DEVICE: "mapped-device-symbolic",
    DriveType.NVME: "nvme-symbolic",
    DriveType.RAID: "raid-symbolic",
    DriveType.RAM_DISK: "ram-disk-symbolic",
    DriveType.SSD: "ssd-symbolic",
    DriveType.ZFS_VOLUME: "zfs-symbolic",
    DriveType.ZRAM: "zram-symbolic",
}

DEFAULT_ICON_NAME = "unknown-drive-type-symbolic"

_VIRTUAL_TYPES = frozenset(
    {
        DriveType.LOOP_DEVICE,
        DriveType.MAPPED_DEVICE,
        DriveType.RAID,
        DriveType.RAM_DISK,
        DriveType.ZFS_VOLUME,
        DriveType.ZRAM,
    }
)


@dataclass(eq=False)
class Drive:
    """A block device found in /sys/block; equal drives share a block device name."""

    block_device: str
    sysfs_path: Path
    model_name: str | None = None
    drive_type: DriveType = DriveType.UNKNOWN
    bus_slot: SlotType | None = None

    def __post_init__(self) -> None:
        self.sysfs_path = Path(self.sysfs_path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Drive):
            return NotImplemented
        return self.block_device == other.block_device

    def __hash__(self) -> int:
        return hash(self.block_device)

    @classmethod
    def get_sysfs_paths(cls, root: str | Path = PATH_SYSFS) -> list[Path]:
        """Return the sysfs paths of all block devices below ``root``."""
        log.debug("Finding entries in %s", root)
        return [entry for entry in sorted(Path(root).iterdir()) if entry.name]

    @classmethod
    def from_sysfs(cls, sysfs_path: str | Path) -> Drive:
        """Build a drive from the information found in its sysfs directory."""
        sysfs_path = Path(sysfs_path)
        block_device = sysfs_path.name
        if not block_device or block_device == "..":
            raise ValueError(f"invalid sysfs path: {sysfs_path}")
        log.debug("Creating Drive object of %s", sysfs_path)

        drive = cls(block_device=block_device, sysfs_path=sysfs_path)
        model = _try(drive.model)
        drive.model_name = model.strip() if model is not None else None
        drive.drive_type = _try(drive._detect_type) or DriveType.UNKNOWN
        drive.bus_slot = _try(drive.slot)
        log.debug("Created Drive object of %s: %r", sysfs_path, drive)
        return drive

    def sys_stats(self) -> dict[str, int]:
        """Current I/O counters of the drive."""
        try:
            stat = (self.sysfs_path / "stat").read_text()
        except OSError as error:
            raise OSError(f"unable to read /sys/block/{self.block_device}/stat") from error
        return parse_disk_stats(stat)

    def _detect_type(self) -> DriveType:
        for prefix, drive_type in _DEVICE_PREFIXES:
            if self.block_device.startswith(prefix):
                return drive_type
        try:
            raw = (self.sysfs_path / "queue" / "rotational").read_text()
        except OSError:
            return DriveType.UNKNOWN
        if _parse_unsigned(raw.replace("\n", ""), bits=8) != 0:
            return DriveType.HDD
        return DriveType.FLASH if self.removable() else DriveType.SSD

    def _read_flag(self, name: str) -> int:
        raw = (self.sysfs_path / name).read_text().replace("\n", "")
        try:
            return _parse_unsigned(raw, bits=8)
        except ValueError as error:
            raise ValueError(f"unable to parse {name} sysfs file") from error

    def removable(self) -> bool:
        """Whether the drive is removable."""
        return self._read_flag("removable") != 0

    def writable(self) -> bool:
        """Whether the drive is writable."""
        return self._read_flag("ro") == 0

    def capacity(self) -> int:
        """Capacity of the drive in bytes."""
        raw = (self.sysfs_path / "size").read_text().replace("\n", "")
        try:
            sectors = _parse_unsigned(raw, bits=64)
        except ValueError as error:
            raise ValueError("unable to parse size sysfs file") from error
        return sectors * SECTOR_SIZE

    def model(self) -> str:
        """Raw model string of the drive."""
        return (self.sysfs_path / "device" / "model").read_text()

    def wwid(self) -> str:
        """World-wide identification of the drive."""
        return (self.sysfs_path / "device" / "wwid").read_text()

    def slot(self) -> SlotType:
        """Detect where the drive is attached: PCI address, ATA slot or USB slot."""
        for detect in (self._pci_slot, self._ata_slot, self._usb_slot):
            found = _try(detect)
            if found is not None:
                return found
        raise LookupError("unsupported drive slot type")

    def _pci_slot(self) -> str:
        address = (self.sysfs_path / "device" / "address").read_text().strip()
        return _parse_pci_slot(address)

    def _symlink(self) -> str:
        return os.readlink(self.sysfs_path)

    def _ata_slot(self) -> AtaSlot:
        sub_path, ata_device = parse_ata_symlink(self._symlink())
        ata_path = Path(os.path.normpath(self.sysfs_path / ".." / sub_path))
        for entry in sorted(ata_path.iterdir()):
            match = _RE_ATA_LINK.search(entry.name)
            if match is None:
                continue
            try:
                ata_link = _parse_unsigned(match.group(2), bits=8)
            except ValueError:
                continue
            return AtaSlot(ata_device=ata_device, ata_link=ata_link)
        raise LookupError("No ata link number found")

    def _usb_slot(self) -> UsbSlot:
        return parse_usb_symlink(self._symlink())

    def link(self) -> Link:
        """Link speed information of the bus the drive is attached to."""
        slot = self.bus_slot
        if isinstance(slot, str):
            return Link(LinkKind.PCIE, link_from_pci_slot(slot))
        if isinstance(slot, AtaSlot):
            return Link(LinkKind.SATA, link_from_ata_slot(slot))
        if isinstance(slot, UsbSlot):
            return Link(LinkKind.USB, link_from_usb_slot(slot))
        raise ValueError("unsupported drive connection type")

    def icon_name(self) -> str:
        """Name of the themed icon matching the drive type."""
        return _ICON_NAMES.get(self.drive_type, DEFAULT_ICON_NAME)

    def is_virtual(self) -> bool:
        """Whether the drive is virtual or has no capacity."""
        if self.drive_type in _VIRTUAL_TYPES:
            return True
        return (_try(self.capacity) or 0) == 0


@dataclass
class DriveData:
    """A snapshot of a drive and its current readings."""

    inner: Drive
    is_virtual: bool
    writable: bool | None
    removable: bool | None
    disk_stats: dict[str, int] = field(default_factory=dict)
    capacity: int | None = None
    link: Link | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> DriveData:
        """Gather the data of the drive at ``path``."""
        log.debug("Gathering drive data for %s", path)
        inner = Drive.from_sysfs(path)
        data = cls(
            inner=inner,
            is_virtual=inner.is_virtual(),
            writable=_try(inner.writable),
            removable=_try(inner.removable),
            disk_stats=_try(inner.sys_stats) or {},
            capacity=_try(inner.capacity),
            link=_try(inner.link),
        )
        log.debug("Gathered drive data for %s: %r", path, data)
        return data