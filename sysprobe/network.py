"""Network interfaces found in /sys/class/net."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .sysfs import MalformedUeventError, read_uevent

log = logging.getLogger(__name__)

PATH_SYSFS = "/sys/class/net"


class InterfaceType(Enum):
    """Kind of a network interface, valued by its human readable label."""

    BLUETOOTH = "Bluetooth Tether"
    BRIDGE = "Network Bridge"
    DOCKER = "Docker Bridge"
    ETHERNET = "Ethernet Connection"
    INFINIBAND = "InfiniBand Connection"
    SLIP = "Serial Line IP Connection"
    VIRTUAL_ETHERNET = "Virtual Ethernet Device"
    VM_BRIDGE = "VM Network Bridge"
    VPN = "VPN Tunnel"
    WIREGUARD = "VPN Tunnel (WireGuard)"
    WLAN = "Wi-Fi Connection"
    WWAN = "WWAN Connection"
    UNKNOWN = "Network Interface"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_interface_name(cls, interface_name: str) -> InterfaceType:
        """Guess the interface type from the prefix of its name."""
        for prefix, interface_type in _INTERFACE_PREFIXES:
            if interface_name.startswith(prefix):
                return interface_type
        return cls.UNKNOWN


# Checked in order: the first matching prefix wins.
_INTERFACE_PREFIXES: tuple[tuple[str, InterfaceType], ...] = (
    ("bn", InterfaceType.BLUETOOTH),
    ("br", InterfaceType.BRIDGE),
    ("dae", InterfaceType.VPN),
    ("docker", InterfaceType.DOCKER),
    ("eth", InterfaceType.ETHERNET),
    ("en", InterfaceType.ETHERNET),
    ("ib", InterfaceType.INFINIBAND),
    ("sl", InterfaceType.SLIP),
    ("tun", InterfaceType.VPN),
    ("veth", InterfaceType.VIRTUAL_ETHERNET),
    ("virbr", InterfaceType.VM_BRIDGE),
    ("vpn", InterfaceType.VPN),
    ("wg", InterfaceType.WIREGUARD),
    ("wl", InterfaceType.WLAN),
    ("ww", InterfaceType.WWAN),
)

_ICON_NAMES: dict[InterfaceType, str] = {
    InterfaceType.BLUETOOTH: "bluetooth-symbolic",
    InterfaceType.BRIDGE: "bridge-symbolic",
    InterfaceType.DOCKER: "docker-bridge-symbolic",
    InterfaceType.ETHERNET: "ethernet-symbolic",
    InterfaceType.INFINIBAND: "infiniband-symbolic",
    InterfaceType.SLIP: "slip-symbolic",
    InterfaceType.VIRTUAL_ETHERNET: "virtual-ethernet",
    InterfaceType.VM_BRIDGE: "vm-bridge-symbolic",
    InterfaceType.VPN: "vpn-symbolic",
    InterfaceType.WIREGUARD: "vpn-symbolic",
    InterfaceType.WLAN: "wlan-symbolic",
    InterfaceType.WWAN: "wwan-symbolic",
}

DEFAULT_ICON_NAME = "unknown-network-type-symbolic"

_VIRTUAL_TYPES = frozenset(
    {
        InterfaceType.BRIDGE,
        InterfaceType.DOCKER,
        InterfaceType.VIRTUAL_ETHERNET,
        InterfaceType.VPN,
        InterfaceType.VM_BRIDGE,
        InterfaceType.WIREGUARD,
    }
)


def _parse_unsigned(text: str) -> int:
    """Parse an unsigned decimal integer without tolerating surrounding whitespace."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    return int(digits)


def _parse_hex_u16(text: str) -> int:
    try:
        value = int(text, 16)
    except ValueError:
        return 0
    return value if 0 <= value <= 0xFFFF and text.strip() == text else 0


def _read_optional(path: Path) -> str | None:
    try:
        return path.read_text()
    except OSError:
        return None


@dataclass(eq=False)
class NetworkInterface:
    """A network interface found in /sys/class/net."""

    interface_name: str
    sysfs_path: Path
    driver_name: str | None = None
    interface_type: InterfaceType = InterfaceType.UNKNOWN
    speed: int | None = None
    pci_id: tuple[int, int] | None = None
    device_label: str | None = None
    hw_address: str | None = None
    _received_bytes_path: Path = field(init=False, repr=False)
    _sent_bytes_path: Path = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.sysfs_path = Path(self.sysfs_path)
        self._received_bytes_path = self.sysfs_path / "statistics" / "rx_bytes"
        self._sent_bytes_path = self.sysfs_path / "statistics" / "tx_bytes"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NetworkInterface):
            return NotImplemented
        return (
            self.interface_name == other.interface_name
            and self.pci_id == other.pci_id
            and self.hw_address == other.hw_address
        )

    def __hash__(self) -> int:
        return hash((self.interface_name, self.pci_id, self.hw_address))

    @classmethod
    def get_sysfs_paths(cls, root: str | Path = PATH_SYSFS) -> list[Path]:
        """Return the sysfs paths of all interfaces except loopback ones."""
        paths = []
        log.debug("Finding entries in %s", root)
        for entry in sorted(Path(root).iterdir()):
            if entry.name.startswith("lo"):
                log.debug("Skipping loopback interface %s", entry.name)
                continue
            paths.append(entry)
        return paths

    @classmethod
    def from_sysfs(cls, sysfs_path: str | Path) -> NetworkInterface:
        """Build an interface from the information found in its sysfs directory."""
        sysfs_path = Path(sysfs_path)
        interface_name = sysfs_path.name
        if not interface_name or interface_name == "..":
            raise ValueError(f"invalid sysfs path: {sysfs_path}")

        try:
            dev_uevent = read_uevent(sysfs_path / "device" / "uevent")
        except (OSError, MalformedUeventError):
            dev_uevent = {}

        pci_id = None
        pci_line = dev_uevent.get("PCI_ID")
        if pci_line is not None:
            vid_str, sep, pid_str = pci_line.partition(":")
            if not sep:
                vid_str, pid_str = "0", "0"
            pci_id = (_parse_hex_u16(vid_str), _parse_hex_u16(pid_str))

        speed = None
        raw_speed = _read_optional(sysfs_path / "speed")
        if raw_speed is not None:
            try:
                speed = _parse_unsigned(raw_speed)
            except ValueError:
                speed = 0

        label = _read_optional(sysfs_path / "device" / "label")
        address = _read_optional(sysfs_path / "address")

        interface = cls(
            interface_name=interface_name,
            sysfs_path=sysfs_path,
            driver_name=dev_uevent.get("DRIVER"),
            interface_type=InterfaceType.from_interface_name(interface_name),
            speed=speed,
            pci_id=pci_id,
            device_label=label.replace("\n", "") if label is not None else None,
            hw_address=address.replace("\n", "") if address is not None else None,
        )
        log.debug("Created NetworkInterface object of %s: %r", sysfs_path, interface)
        return interface

    def display_name(self) -> str:
        """A human readable name: the device label if any, else the interface name."""
        if self.device_label is not None:
            return self.device_label
        return self.interface_name

    def _read_counter(self, path: Path) -> int:
        return _parse_unsigned(path.read_text().replace("\n", ""))

    def received_bytes(self) -> int:
        """Bytes received by this interface."""
        return self._read_counter(self._received_bytes_path)

    def sent_bytes(self) -> int:
        """Bytes sent by this interface."""
        return self._read_counter(self._sent_bytes_path)

    def link_speed(self) -> int:
        """Link speed in bits per second."""
        mbps = _parse_unsigned((self.sysfs_path / "speed").read_text().replace("\n", ""))
        return mbps * 1_000_000

    def icon_name(self) -> str:
        """Name of the themed icon matching the interface type."""
        return _ICON_NAMES.get(self.interface_type, DEFAULT_ICON_NAME)

    def is_virtual(self) -> bool:
        """Whether the interface is a virtual one (bridge, tunnel, ...)."""
        return self.interface_type in _VIRTUAL_TYPES


@dataclass
class NetworkData:
    """A snapshot of a network interface and its counters."""

    inner: NetworkInterface
    is_virtual: bool
    received_bytes: int | None
    sent_bytes: int | None
    display_name: str

    @classmethod
    def from_path(cls, path: str | Path) -> NetworkData:
        """Gather the data of the interface at ``path``."""
        log.debug("Gathering network data for %s", path)
        inner = NetworkInterface.from_sysfs(path)

        def counter(read) -> int | None:
            try:
                return read()
            except (OSError, ValueError):
                return None

        data = cls(
            inner=inner,
            is_virtual=inner.is_virtual(),
            received_bytes=counter(inner.received_bytes),
            sent_bytes=counter(inner.sent_bytes),
            display_name=inner.display_name(),
        )
        log.debug("Gathered network data for %s: %r", path, data)
        return data