# tests/conftest.py
from __future__ import annotations
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from pciutils.types import QueryMode, validate_filters


def write_hex_file(p: Path, value: int) -> None:
    p.write_text(f"0x{value:04x}\n", encoding="ascii")


def make_device_dir(
    real_root: Path,
    bdf: str,
    *,
    vendor: int,
    device: int,
    klass24: int,
    revision: int = 0x00,
    subvendor: int = 0x0000,
    subdevice: int = 0x0000,
    irq: Optional[int] = None,
    modalias: Optional[str] = None,
    label: Optional[str] = None,
) -> Path:
    d = real_root / bdf
    d.mkdir(parents=True, exist_ok=True)
    write_hex_file(d / "vendor", vendor)
    write_hex_file(d / "device", device)
    # class file in sysfs is 24-bit hex; write as 0xHHHHHH
    (d / "class").write_text(f"0x{klass24:06x}\n", encoding="ascii")
    (d / "revision").write_text(f"0x{revision:02x}\n", encoding="ascii")
    write_hex_file(d / "subsystem_vendor", subvendor)
    write_hex_file(d / "subsystem_device", subdevice)
    if irq is not None:
        (d / "irq").write_text(f"{irq}\n")
    if modalias is not None:
        (d / "modalias").write_text(modalias + "\n")
    if label is not None:
        (d / "label").write_text(f" {label}\n")
    return d


def make_device_dir_badhex(real_root: Path, bdf: str) -> Path:
    d = real_root / bdf
    d.mkdir(parents=True, exist_ok=True)
    (d / "vendor").write_text("0xbogusvendor")
    (d / "device").write_text("0xbogusdevice")
    return d


def modalias_for(vendor: int, device: int, klass24: int) -> str:
    return (
        f"pci:v0000{vendor:04X}d0000{device:04X}sv00000000sd00000000"
        f"bc{(klass24 >> 16) & 0xFF:02X}sc{(klass24 >> 8) & 0xFF:02X}"
        f"i{klass24 & 0xFF:02X}"
    )


# (bdf, vendor, device, class) of the well-formed functions in fake_sysfs,
# in BDF order
FAKE_DEVICES = [
    ("0000:00:01.0", 0x8086, 0x2448, 0x060400),
    ("0000:00:1f.6", 0x8086, 0x15BB, 0x020000),
    ("0000:65:00.0", 0x10DE, 0x1DB6, 0x030000),
    ("0000:66:00.0", 0x15B3, 0x1017, 0x020000),
    ("0000:68:00.0", 0xBEEF, 0xBABE, 0x020000),
]


@pytest.fixture
def fake_sysfs(tmp_path: Path) -> Path:
    """
    Build a fake /sys/bus/pci/devices tree using symlinks that resolve to
    real directories elsewhere (imitating Linux' /sys symlink layout).
    """
    root = tmp_path / "devices_linkdir"
    real = tmp_path / "real"
    root.mkdir()
    real.mkdir()

    for bdf, vendor, device, klass in FAKE_DEVICES:
        d = make_device_dir(
            real,
            bdf,
            vendor=vendor,
            device=device,
            klass24=klass,
            irq=16,
            modalias=modalias_for(vendor, device, klass),
        )
        (root / bdf).symlink_to(d, target_is_directory=True)

    gpu = real / "0000:65:00.0"
    (gpu / "revision").write_text("0xa1\n")
    (gpu / "numa_node").write_text("-1\n")
    (gpu / "label").write_text(" Onboard - Video\n")
    (gpu / "resource").write_text(
        """\
0x00000000fb000000 0x00000000fbffffff 0x0000000000040200
0x0000007000000000 0x00000077ffffffff 0x000000000014220c
0x0000000000000000 0x0000000000000000 0x0000000000000000
0x0000007800000000 0x0000007801ffffff 0x000000000014220c
0x0000000000000000 0x0000000000000000 0x0000000000000000
0x000000000000f000 0x000000000000f07f 0x0000000000040101
0x00000000fc000000 0x00000000fc07ffff 0x0000000000046200
"""
    )
    group = tmp_path / "iommu_groups" / "12"
    group.mkdir(parents=True)
    (gpu / "iommu_group").symlink_to(group, target_is_directory=True)

    corrupt = make_device_dir_badhex(real, "0000:67:00.0")
    (root / "0000:67:00.0").symlink_to(corrupt, target_is_directory=True)

    # Dummy to exercise non-bdf check
    (root / "dummy").mkdir()

    return root


@pytest.fixture
def fake_slots(tmp_path: Path) -> Path:
    root = tmp_path / "slots"
    (root / "3").mkdir(parents=True)
    (root / "3" / "address").write_text("0000:65:00\n")
    return root


def proc_line(bus_token: str, ident: str, driver: Optional[str] = None) -> str:
    # bus/devfn, vendor/device, irq, 7 base addresses, 7 sizes[, driver]
    fields = [bus_token, ident, "10"] + ["0000000000000000"] * 7 + ["0"] * 7
    if driver:
        fields.append(driver)
    return "\t".join(fields)


FAKE_PROC = "\n".join(
    [
        proc_line("0008", "80862448"),
        proc_line("00fe", "808615bb", "e1000e"),
        proc_line("6500", "10de1db6", "nvidia"),
        proc_line("6600", "15b31017", "mlx5_core"),
        proc_line("6800", "beefbabe"),
        "0100",
        "",
    ]
)


@pytest.fixture
def fake_proc(tmp_path: Path) -> Path:
    p = tmp_path / "proc_bus_pci_devices"
    p.write_text(FAKE_PROC, encoding="ascii")
    return p


def raw_record(bdf: str, vendor: int, device: int, bus_token: str = "0000") -> Dict[str, Any]:
    """A provider record in plain-mapping form."""
    return {
        "dev_name": bdf,
        "vendor_id": vendor,
        "device_id": device,
        "matcher": {"bus": bus_token, "idents": f"{vendor:04x}{device:04x}"},
    }


class FakeProvider:
    """In-memory enumeration provider that counts its calls."""

    def __init__(
        self,
        records: Sequence[Dict[str, Any]],
        gate: Optional[threading.Event] = None,
    ):
        self.records = list(records)
        self.filters = frozenset()
        self.calls: List[tuple] = []
        self.set_calls = 0
        self.clear_calls = 0
        # when set, LIST enumeration blocks until the event fires
        self.gate = gate
        self.entered = threading.Event()

    def enumerate(self, mode, filters):
        mode = QueryMode.coerce(mode)
        self.calls.append((mode, frozenset(filters)))
        self.entered.set()
        if self.gate is not None and mode is QueryMode.LIST:
            self.gate.wait(5)
        recs = [
            r for r in self.records if not filters or r.get("class", 0) in filters
        ]
        if mode is QueryMode.LIST:
            return tuple(recs)
        if mode is QueryMode.COUNT:
            return len(recs)
        return tuple(r.get("modalias", "") for r in recs)

    def list_calls(self) -> int:
        return sum(1 for m, _ in self.calls if m is QueryMode.LIST)

    def get_filters(self):
        return self.filters

    def set_filters(self, filters):
        self.set_calls += 1
        self.filters = validate_filters(filters)
        return self.filters

    def clear_filters(self):
        self.clear_calls += 1
        self.filters = frozenset()
        return self.filters


class CountingReader:
    """BindingReader stand-in; `fail` makes the next reads raise."""

    def __init__(self, records=(), fail: Optional[Exception] = None):
        self.records = tuple(records)
        self.reads = 0
        self.fail = fail

    def read(self):
        self.reads += 1
        if self.fail is not None:
            raise self.fail
        return self.records
