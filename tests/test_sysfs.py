import math
import time

import pytest

from sysprobe.sysfs import (
    MalformedUeventError,
    boot_time,
    finite_or,
    finite_or_default,
    finite_or_else,
    flatpak_app_path,
    read_sysfs,
    read_uevent,
    read_uevent_contents,
)


def test_read_uevent_contents_valid_simple():
    assert read_uevent_contents("a=b") == {"a": "b"}


def test_read_uevent_contents_valid_single_equals():
    assert read_uevent_contents("=") == {"": ""}


def test_read_uevent_contents_valid_multiple_equals():
    assert read_uevent_contents("a=b=c") == {"a": "b=c"}


def test_read_uevent_contents_valid_left_empty():
    assert read_uevent_contents("=EMPTY") == {"": "EMPTY"}


def test_read_uevent_contents_valid_right_empty():
    assert read_uevent_contents("EMPTY=") == {"EMPTY": ""}


def test_read_uevent_contents_valid_complex():
    raw = "DRIVER=driver\nPCI_CLASS=20000\nCONTAINS_EQUALS=a=b\nEMPTY=\n="
    assert read_uevent_contents(raw) == {
        "DRIVER": "driver",
        "PCI_CLASS": "20000",
        "CONTAINS_EQUALS": "a=b",
        "EMPTY": "",
        "": "",
    }


def test_read_uevent_contents_valid_empty():
    assert read_uevent_contents("") == {}


def test_read_uevent_contents_invalid():
    with pytest.raises(MalformedUeventError):
        read_uevent_contents("NO_EQUALS")


def test_read_uevent_from_file(tmp_path):
    path = tmp_path / "uevent"
    path.write_text("DRIVER=driver\nPCI_CLASS=20000\n")
    assert read_uevent(path) == {"DRIVER": "driver", "PCI_CLASS": "20000"}


def test_read_uevent_missing_file(tmp_path):
    with pytest.raises(OSError):
        read_uevent(tmp_path / "missing")


def test_read_sysfs_parses_trimmed(tmp_path):
    path = tmp_path / "value"
    path.write_text("42\n")
    assert read_sysfs(path, int) == 42


def test_read_sysfs_string(tmp_path):
    path = tmp_path / "value"
    path.write_text("0xc1  \n")
    assert read_sysfs(path, str) == "0xc1"


def test_read_sysfs_invalid(tmp_path):
    path = tmp_path / "value"
    path.write_text("nope\n")
    with pytest.raises(ValueError):
        read_sysfs(path, int)


def test_finite_or_finite():
    assert finite_or(1.0, 8.0) == 1.0


def test_finite_or_infinite():
    assert finite_or(math.inf, 8.0) == 8.0


def test_finite_or_else_finite():
    assert finite_or_else(1.0, lambda _: 2.0**3) == 1.0


def test_finite_or_else_infinite():
    assert finite_or_else(math.inf, lambda _: 2.0**3) == 8.0


def test_finite_or_default_finite():
    assert finite_or_default(1.0) == 1.0


def test_finite_or_default_infinite():
    assert finite_or_default(math.inf) == 0.0


def test_finite_or_default_nan():
    assert finite_or_default(math.nan) == 0.0


def test_flatpak_app_path(tmp_path):
    info = tmp_path / "flatpak-info"
    info.write_text("[Application]\nname=x\n\n[Instance]\napp-path=/app/path\n")
    assert flatpak_app_path(info) == "/app/path"


def test_flatpak_app_path_missing_section(tmp_path):
    info = tmp_path / "flatpak-info"
    info.write_text("[Application]\nname=x\n")
    with pytest.raises(LookupError):
        flatpak_app_path(info)


def test_flatpak_app_path_missing_key(tmp_path):
    info = tmp_path / "flatpak-info"
    info.write_text("[Instance]\nother=1\n")
    with pytest.raises(LookupError):
        flatpak_app_path(info)


def test_boot_time(tmp_path):
    uptime = tmp_path / "uptime"
    uptime.write_text("100.5 200.0\n")
    booted = boot_time(uptime).timestamp()
    expected = time.time() - 100
    assert abs(booted - expected) <= 2


def test_boot_time_invalid(tmp_path):
    uptime = tmp_path / "uptime"
    uptime.write_text("garbage 1\n")
    with pytest.raises(ValueError):
        boot_time(uptime)