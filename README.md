# sysprobe

sysprobe reads hardware and system state from the Linux `/sys` and `/proc`
filesystems and from a few standard tools (`lscpu`, `udevadm`, `dmidecode`,
`pkexec`). It returns plain Python objects (dataclasses and enums) and raises
an exception (`OSError`, `ValueError`, `LookupError` or `PermissionError`)
when a value cannot be read or parsed. The `*Data` snapshot classes catch
those errors and store `None` for the readings they could not get.

## Installation

```
pip install sysprobe
```

Python 3.10 or newer is required. The package has no third-party dependencies.

## Modules

- `sysprobe.sysfs`: `read_uevent_contents`, `read_uevent` (raises
  `MalformedUeventError` on a line without `=`), `read_sysfs(path, convert)`,
  the float helpers `finite_or`, `finite_or_default` and `finite_or_else`,
  `boot_time`, `is_flatpak` and `flatpak_app_path`.
- `sysprobe.cpu`: `CpuInfo` parsed from `lscpu` (`CpuInfo.get`,
  `CpuInfo.parse_lscpu`), `trade_mark_symbols`, per-CPU usage counters from
  `/proc/stat` (`get_cpu_usage`, `parse_proc_stat`, `parse_proc_stat_line`),
  `get_cpu_freq`, the temperature sensor (`find_temperature_sensor`,
  `read_sysfs_thermal`, `get_temperature`) and the `CpuData` snapshot.
- `sysprobe.memory`: `MemoryData` from `/proc/meminfo`, and `MemoryDevice`
  entries from `udevadm` or `dmidecode` (`parse_virtual_dmi`,
  `parse_dmidecode`, `virtual_dmi`, `get_memory_devices`,
  `pkexec_dmidecode`).
- `sysprobe.battery`: `Battery`, `State`, `Technology`, `BatteryData` and
  `untangle_weird_encoding` for names stored as hex bytes.
- `sysprobe.network`: `NetworkInterface`, `InterfaceType` and `NetworkData`.
- `sysprobe.drive`: `Drive`, `DriveType`, `DriveData` and the parsers
  `parse_disk_stats`, `parse_ata_symlink`, `parse_usb_symlink`.
- `sysprobe.link`: `PcieSpeed`, `SataSpeed`, `UsbSpeed`, `PcieLinkData`,
  `LinkData`, `Link`, `LinkKind`, `AtaSlot`, `UsbSlot` and the readers
  `read_pcie_link_data`, `link_from_pci_slot`, `link_from_ata_slot`,
  `link_from_usb_slot`.

Functions that read a fixed system path take that path (or its root
directory) as an optional argument, so they can be pointed at a copy of a
sysfs tree.

## Examples

```python
from sysprobe.cpu import CpuInfo, get_cpu_usage
from sysprobe.memory import MemoryData
from sysprobe.battery import Battery, BatteryData
from sysprobe.network import NetworkInterface, NetworkData
from sysprobe.drive import Drive, DriveData

info = CpuInfo.get()
print(info.model_name, info.logical_cpus, info.max_speed)

# Each entry is (idle_time, total_time) since boot, or None for a line
# that could not be parsed.
for usage in get_cpu_usage():
    print(usage)

mem = MemoryData.read()
print(mem.total_mem, mem.available_mem)

for path in Battery.get_sysfs_paths():
    data = BatteryData.from_path(path)
    print(data.inner.model_name, data.charge, data.state)

for path in NetworkInterface.get_sysfs_paths():
    data = NetworkData.from_path(path)
    print(data.display_name, data.received_bytes, data.sent_bytes)

for path in Drive.get_sysfs_paths():
    data = DriveData.from_path(path)
    print(data.inner.block_device, data.inner.drive_type, data.capacity, data.link)
```

The parsers also work on text you pass in, which is useful for tests or for
data collected on another machine:

```python
from sysprobe.link import PcieLinkData, UsbSpeed
from sysprobe.sysfs import read_uevent_contents

print(PcieLinkData.parse("16.0 GT/s PCIe", "8"))   # PCIe 4.0 ×8
print(UsbSpeed.parse("5000"))                       # USB 3.0 (5 Gb/s)
print(read_uevent_contents("DRIVER=nvme\nPCI_CLASS=10802"))
```

## What it does not do

- There is no command-line program; sysprobe is a library only.
- It does not read GPU or NPU data, and it does not list processes or the
  applications they belong to.
- It has no PCI ID database: a network interface is named by its
  `device/label` file or else by its interface name, and only the raw
  vendor and device IDs are kept (`NetworkInterface.pci_id`).
- It computes no rates or percentages over time: usage counters are
  cumulative values, and working out deltas is left to the caller.

## Running the tests

```
pip install -e ".[test]"
pytest
```