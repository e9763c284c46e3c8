# pciutils/sysfs.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
import logging

from .types import Matcher

log = logging.getLogger(__name__)

SYSFS_DEVICES_DEFAULT = "/sys/bus/pci/devices"
SYSFS_SLOTS_DEFAULT = "/sys/bus/pci/slots"

ROM_RESOURCE_INDEX = 6


def _read_text(p: Path) -> Optional[str]:
    try:
        return p.read_text(encoding="ascii", errors="ignore").strip()
    except OSError:
        return None


def _read_hex(p: Path) -> Optional[int]:
    s = _read_text(p)
    if s is None:
        return None
    try:
        return int(s, 16)
    except ValueError:
        return None


def _read_int(p: Path) -> Optional[int]:
    s = _read_text(p)
    if s is None:
        return None
    try:
        return int(s, 10)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True, order=True)
class PciAddress:
    domain: int
    bus: int
    device: int
    function: int

    @property
    def devfn(self) -> int:
        return ((self.device & 0x1F) << 3) | (self.function & 0x07)

    @classmethod
    def parse(cls, name: str) -> "PciAddress":
        # "dddd:bb:dd.f"
        dom, bus, devfunc = name.split(":")
        dev, func = devfunc.split(".")
        return cls(int(dom, 16), int(bus, 16), int(dev, 16), int(func, 16))

    def __str__(self) -> str:
        return f"{self.domain:04x}:{self.bus:02x}:{self.device:02x}.{self.function}"


@dataclass(frozen=True, slots=True)
class PciRecord:
    """One enumerated PCI function. Immutable once returned by a provider."""

    bdf: PciAddress
    vendor_id: int
    device_id: int
    subvendor_id: int
    subdevice_id: int
    class_code: int  # 24-bit base:sub:prog-if
    revision: int
    irq: Optional[int] = None
    numa_node: Optional[int] = None
    iommu_group: Optional[int] = None
    label: str = ""
    phys_slot: Optional[str] = None
    rom_size: int = 0
    modalias: str = ""
    matcher: Matcher = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "matcher",
            Matcher(
                bus=f"{self.bdf.bus:02x}{self.bdf.devfn:02x}",
                idents=f"{self.vendor_id:04x}{self.device_id:04x}",
            ),
        )

    @property
    def dev_name(self) -> str:
        return str(self.bdf)

    @property
    def base_class(self) -> int:
        return (self.class_code >> 16) & 0xFF

    @property
    def subclass(self) -> int:
        return (self.class_code >> 8) & 0xFF

    @property
    def prog_interface(self) -> int:
        return self.class_code & 0xFF

    def as_dict(self) -> Dict[str, Any]:
        return {
            "dev_name": self.dev_name,
            "domain": self.bdf.domain,
            "dev_raw": [self.bdf.domain, self.bdf.bus, self.bdf.device, self.bdf.function],
            "vendor_id": self.vendor_id,
            "device_id": self.device_id,
            "subvendor_id": self.subvendor_id,
            "subdevice_id": self.subdevice_id,
            "class": self.base_class,
            "subclass": self.subclass,
            "prog_interface": self.prog_interface,
            "revision": self.revision,
            "irq": self.irq,
            "numa_node": self.numa_node,
            "iommu": self.iommu_group,
            "label": self.label,
            "phys": self.phys_slot,
            "rom_size": self.rom_size,
            "modalias": self.modalias,
            "matcher": {"bus": self.matcher.bus, "idents": self.matcher.idents},
        }


def read_rom_size(path: Path) -> int:
    """
    Size of the expansion ROM from /sys/bus/pci/devices/<bdf>/resource.
    Line 6 is the ROM; `end` is inclusive and an unused slot is all zeros.
    """
    try:
        lines = path.read_text().split("\n")
    except OSError:
        return 0
    if len(lines) <= ROM_RESOURCE_INDEX or not lines[ROM_RESOURCE_INDEX].strip():
        return 0
    try:
        s, e, _ = (int(tok, 16) for tok in lines[ROM_RESOURCE_INDEX].split())
    except ValueError:
        return 0
    if s == 0 and e == 0:
        return 0
    return (e - s) + 1


def read_slot_map(root: Path) -> Dict[str, str]:
    """Map "dddd:bb:dd" slot addresses to physical slot names."""
    slots: Dict[str, str] = {}
    try:
        entries = list(root.iterdir())
    except OSError:
        return slots
    for d in entries:
        addr = _read_text(d / "address")
        if addr:
            slots[addr] = d.name
    return slots


class SysfsEnumerator:
    def __init__(
        self,
        root: str = SYSFS_DEVICES_DEFAULT,
        slots_root: str = SYSFS_SLOTS_DEFAULT,
    ):
        self.root = Path(root)
        self.slots_root = Path(slots_root)

    def scan(self, classes: Optional[Iterable[int]] = None) -> Dict[str, PciRecord]:
        """
        Walk the sysfs device directory. When `classes` is non-empty only
        functions whose base class is in it are returned. Entries with
        unparsable vendor, device or class files are skipped.
        Raises OSError if the root itself cannot be listed.
        """
        wanted = frozenset(int(c) for c in classes) if classes else frozenset()
        slots = read_slot_map(self.slots_root)
        devices: Dict[str, PciRecord] = {}
        for d in self.root.iterdir():
            name = d.name
            if ":" not in name or "." not in name:  # skip non-BDF entries
                continue
            try:
                bdf = PciAddress.parse(name)
            except ValueError:
                log.debug("skipping unparsable sysfs entry %s", name)
                continue

            vendor = _read_hex(d / "vendor")
            device = _read_hex(d / "device")
            cls24 = _read_hex(d / "class")
            if vendor is None or device is None or cls24 is None:
                log.debug("skipping %s: missing vendor/device/class", name)
                continue
            if wanted and ((cls24 >> 16) & 0xFF) not in wanted:
                continue

            iommu_group = None
            try:
                iommu_group = int((d / "iommu_group").resolve().name)
            except (OSError, ValueError):
                pass

            rec = PciRecord(
                bdf=bdf,
                vendor_id=vendor & 0xFFFF,
                device_id=device & 0xFFFF,
                subvendor_id=(_read_hex(d / "subsystem_vendor") or 0) & 0xFFFF,
                subdevice_id=(_read_hex(d / "subsystem_device") or 0) & 0xFFFF,
                class_code=cls24 & 0xFFFFFF,
                revision=(_read_hex(d / "revision") or 0) & 0xFF,
                irq=_read_int(d / "irq"),
                numa_node=_read_int(d / "numa_node"),
                iommu_group=iommu_group,
                label=_read_text(d / "label") or "",
                phys_slot=slots.get(
                    f"{bdf.domain:04x}:{bdf.bus:02x}:{bdf.device:02x}"
                ),
                rom_size=read_rom_size(d / "resource"),
                modalias=_read_text(d / "modalias") or "",
            )
            devices[str(bdf)] = rec
        return devices

