import pytest

from sysprobe.link import (
    AtaSlot,
    Link,
    LinkData,
    LinkKind,
    PcieLinkData,
    PcieSpeed,
    SataSpeed,
    UsbSlot,
    UsbSpeed,
    link_from_ata_slot,
    link_from_pci_slot,
    link_from_usb_slot,
    read_pcie_link_data,
)

PCIE_SPEEDS = {
    "2.5 GT/s PCIe": PcieSpeed.PCIE_10,
    "5.0 GT/s PCIe": PcieSpeed.PCIE_20,
    "8.0 GT/s PCIe": PcieSpeed.PCIE_30,
    "16.0 GT/s PCIe": PcieSpeed.PCIE_40,
    "32.0 GT/s PCIe": PcieSpeed.PCIE_50,
    "64.0 GT/s PCIe": PcieSpeed.PCIE_60,
}

PCIE_LINK_DATA = {
    PcieLinkData(PcieSpeed.PCIE_10, 2): "PCIe 1.0 ×2",
    PcieLinkData(PcieSpeed.PCIE_20, 4): "PCIe 2.0 ×4",
    PcieLinkData(PcieSpeed.PCIE_30, 1): "PCIe 3.0 ×1",
    PcieLinkData(PcieSpeed.PCIE_40, 8): "PCIe 4.0 ×8",
    PcieLinkData(PcieSpeed.PCIE_50, 16): "PCIe 5.0 ×16",
    PcieLinkData(PcieSpeed.PCIE_60, 1): "PCIe 6.0 ×1",
}


@pytest.mark.parametrize("text,expected", list(PCIE_SPEEDS.items()))
def test_parse_pcie_link_speeds(text, expected):
    assert PcieSpeed.parse(text) is expected


@pytest.mark.parametrize("text", ["128.0 GT/s PCIe", "SOMETHING_ELSE", ""])
def test_parse_pcie_link_speeds_failure(text):
    with pytest.raises(ValueError):
        PcieSpeed.parse(text)


@pytest.mark.parametrize(
    "speed,expected",
    [
        (PcieSpeed.PCIE_10, "PCIe 1.0"),
        (PcieSpeed.PCIE_20, "PCIe 2.0"),
        (PcieSpeed.PCIE_30, "PCIe 3.0"),
        (PcieSpeed.PCIE_40, "PCIe 4.0"),
        (PcieSpeed.PCIE_50, "PCIe 5.0"),
        (PcieSpeed.PCIE_60, "PCIe 6.0"),
    ],
)
def test_display_pcie_link_speeds(speed, expected):
    assert str(speed) == expected


@pytest.mark.parametrize(
    "speed,width,expected",
    [
        (PcieSpeed.PCIE_10, 2, "PCIe 1.0 ×2"),
        (PcieSpeed.PCIE_20, 4, "PCIe 2.0 ×4"),
        (PcieSpeed.PCIE_30, 1, "PCIe 3.0 ×1"),
        (PcieSpeed.PCIE_40, 8, "PCIe 4.0 ×8"),
        (PcieSpeed.PCIE_50, 16, "PCIe 5.0 ×16"),
        (PcieSpeed.PCIE_60, 1, "PCIe 6.0 ×1"),
    ],
)
def test_display_pcie_link_data(speed, width, expected):
    assert str(PcieLinkData(speed, width)) == expected


def test_parse_pcie_link_data_invalid_input():
    with pytest.raises(ValueError):
        PcieLinkData.parse("random", "noise")


def test_parse_pcie_link_data_valid():
    assert PcieLinkData.parse("16.0 GT/s PCIe", "16") == PcieLinkData(
        PcieSpeed.PCIE_40, 16
    )


def test_parse_pcie_link_data_bad_width():
    with pytest.raises(ValueError):
        PcieLinkData.parse("16.0 GT/s PCIe", "x16")


@pytest.mark.parametrize("data,expected", list(PCIE_LINK_DATA.items()))
def test_display_pcie_link_identical_current_max_only_once(data, expected):
    assert str(LinkData(current=data, max=data)) == expected


@pytest.mark.parametrize("data,expected", list(PCIE_LINK_DATA.items()))
def test_display_pcie_link_no_max(data, expected):
    assert str(LinkData(current=data, max=None)) == expected


def test_display_pcie_link_different_max():
    for current in PCIE_LINK_DATA:
        for maximum in PCIE_LINK_DATA:
            if current != maximum:
                result = str(LinkData(current=current, max=maximum))
                assert result == f"{PCIE_LINK_DATA[current]} / {PCIE_LINK_DATA[maximum]}"


def test_display_pcie_link_different_max_2():
    data = LinkData(
        current=PcieLinkData(PcieSpeed.PCIE_40, 8),
        max=PcieLinkData(PcieSpeed.PCIE_50, 16),
    )
    assert str(data) == "PCIe 4.0 ×8 / PCIe 5.0 ×16"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1.5 Gbps", SataSpeed.SATA_150),
        ("3.0 Gbps", SataSpeed.SATA_300),
        ("6.0 Gbps", SataSpeed.SATA_600),
    ],
)
def test_parse_sata_link_speeds(text, expected):
    assert SataSpeed.parse(text) is expected


@pytest.mark.parametrize("text", ["4.0 Gbps", "SOMETHING_ELSE", ""])
def test_parse_sata_link_speeds_failure(text):
    with pytest.raises(ValueError):
        SataSpeed.parse(text)


@pytest.mark.parametrize(
    "speed,expected",
    [
        (SataSpeed.SATA_150, "SATA-150"),
        (SataSpeed.SATA_300, "SATA-300"),
        (SataSpeed.SATA_600, "SATA-600"),
    ],
)
def test_display_sata_link_speeds(speed, expected):
    assert str(speed) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1.5", UsbSpeed("USB 1.0")),
        ("12", UsbSpeed("USB 1.1", 12)),
        ("480", UsbSpeed("USB 2.0", 480)),
        ("5000", UsbSpeed("USB 3.0", 5_000)),
        ("10000", UsbSpeed("USB 3.1", 10_000)),
        ("20000", UsbSpeed("USB 3.2", 20_000)),
        ("40000", UsbSpeed("USB4", 40_000)),
        ("80000", UsbSpeed("USB4 2.0", 80_000)),
        ("120000", UsbSpeed("USB4 2.0", 120_000)),
    ],
)
def test_parse_usb_link_speeds(text, expected):
    assert UsbSpeed.parse(text) == expected


@pytest.mark.parametrize("text", ["4000", "160000", "SOMETHING_ELSE", ""])
def test_parse_usb_link_speeds_failure(text):
    with pytest.raises(ValueError):
        UsbSpeed.parse(text)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1.5", "USB 1.0 (1.5 Mb/s)"),
        ("12", "USB 1.1 (12 Mb/s)"),
        ("480", "USB 2.0 (480 Mb/s)"),
        ("5000", "USB 3.0 (5 Gb/s)"),
        ("10000", "USB 3.1 (10 Gb/s)"),
        ("20000", "USB 3.2 (20 Gb/s)"),
        ("40000", "USB4 (40 Gb/s)"),
        ("80000", "USB4 2.0 (80 Gb/s)"),
        ("120000", "USB4 2.0 (120 Gb/s)"),
    ],
)
def test_display_usb_link_speeds(text, expected):
    assert str(UsbSpeed.parse(text)) == expected


def test_usb_4_2_0_variants_differ():
    assert UsbSpeed.parse("80000") != UsbSpeed.parse("120000")


def test_link_display():
    data = LinkData(current=SataSpeed.SATA_300, max=SataSpeed.SATA_600)
    assert str(Link(LinkKind.SATA, data)) == "SATA-300 / SATA-600"
    assert str(Link()) == "N/A"


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_read_pcie_link_data(tmp_path):
    _write(tmp_path / "current_link_speed", "8.0 GT/s PCIe\n")
    _write(tmp_path / "current_link_width", "4\n")
    _write(tmp_path / "max_link_speed", "16.0 GT/s PCIe\n")
    _write(tmp_path / "max_link_width", "16\n")
    data = read_pcie_link_data(tmp_path)
    assert data.current == PcieLinkData(PcieSpeed.PCIE_30, 4)
    assert data.max == PcieLinkData(PcieSpeed.PCIE_40, 16)
    assert str(data) == "PCIe 3.0 ×4 / PCIe 4.0 ×16"


def test_read_pcie_link_data_without_max(tmp_path):
    _write(tmp_path / "current_link_speed", "8.0 GT/s PCIe\n")
    _write(tmp_path / "current_link_width", "4\n")
    data = read_pcie_link_data(tmp_path)
    assert data.max is None
    assert str(data) == "PCIe 3.0 ×4"


def test_read_pcie_link_data_missing_current(tmp_path):
    _write(tmp_path / "current_link_speed", "8.0 GT/s PCIe\n")
    with pytest.raises(OSError):
        read_pcie_link_data(tmp_path)


def test_link_from_pci_slot(tmp_path):
    slot_dir = tmp_path / "0000:01:00.0"
    _write(slot_dir / "current_link_speed", "2.5 GT/s PCIe\n")
    _write(slot_dir / "current_link_width", "1\n")
    data = link_from_pci_slot("0000:01:00.0", root=tmp_path)
    assert data.current == PcieLinkData(PcieSpeed.PCIE_10, 1)


def test_link_from_pci_slot_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        link_from_pci_slot("0000:99:00.0", root=tmp_path)


def test_link_from_ata_slot(tmp_path):
    _write(tmp_path / "link3" / "sata_spd", "3.0 Gbps\n")
    _write(tmp_path / "link3" / "sata_spd_max", "6.0 Gbps\n")
    data = link_from_ata_slot(AtaSlot(ata_device=2, ata_link=3), root=tmp_path)
    assert data == LinkData(current=SataSpeed.SATA_300, max=SataSpeed.SATA_600)


def test_link_from_ata_slot_bad_current(tmp_path):
    _write(tmp_path / "link1" / "sata_spd", "<unknown>\n")
    with pytest.raises(ValueError):
        link_from_ata_slot(AtaSlot(ata_device=1, ata_link=1), root=tmp_path)


def test_link_from_ata_slot_bad_max_is_dropped(tmp_path):
    _write(tmp_path / "link1" / "sata_spd", "1.5 Gbps\n")
    _write(tmp_path / "link1" / "sata_spd_max", "<unknown>\n")
    data = link_from_ata_slot(AtaSlot(ata_device=1, ata_link=1), root=tmp_path)
    assert data == LinkData(current=SataSpeed.SATA_150, max=None)


def test_link_from_usb_slot(tmp_path):
    _write(tmp_path / "usb4" / "speed", "10000\n")
    _write(tmp_path / "usb4" / "4-2" / "speed", "480\n")
    data = link_from_usb_slot(UsbSlot(usb_bus=4, usb_device="4-2"), root=tmp_path)
    assert str(data) == "USB 2.0 (480 Mb/s) / USB 3.1 (10 Gb/s)"


def test_link_from_usb_slot_missing_device(tmp_path):
    _write(tmp_path / "usb4" / "speed", "10000\n")
    with pytest.raises(OSError):
        link_from_usb_slot(UsbSlot(usb_bus=4, usb_device="4-2"), root=tmp_path)