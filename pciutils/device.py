"""
Device entity and the merge that attributes kernel drivers to enumerated
PCI functions.

Enumeration records carry a `Matcher`: a bus pattern and an identity
pattern built the way /proc/bus/pci/devices prints its first two columns.
A device is attributed by a single ordered scan of the binding records:
the first record whose identity token matches the identity pattern wins
and the scan stops. Later rows that would also match are ignored, so the
result depends only on file order.
"""

from __future__ import annotations
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Optional, Sequence, Tuple

from .backends.procfs import BindingRecord
from .types import Matcher

log = logging.getLogger(__name__)


def matcher_of(raw: Any) -> Matcher:
    """Read the matcher off a provider record (object attribute or mapping key)."""
    m = raw["matcher"] if isinstance(raw, Mapping) else getattr(raw, "matcher", None)
    if isinstance(m, Matcher):
        return m
    if isinstance(m, Mapping):
        return Matcher(bus=str(m["bus"]), idents=str(m["idents"]))
    raise TypeError(f"enumeration record has no matcher: {raw!r}")


@dataclass(frozen=True, slots=True)
class Device:
    raw_data: Any
    matcher: Matcher = field(init=False)
    driver_names: FrozenSet[str] = field(init=False, default=frozenset())
    _attributed: bool = field(init=False, default=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "matcher", matcher_of(self.raw_data))

    @property
    def driver(self) -> Optional[str]:
        """The attributed driver, or None when unavailable."""
        return next(iter(self.driver_names), None)

    @property
    def missing(self) -> bool:
        return not self.driver_names

    def matches_bus(self, record: BindingRecord) -> bool:
        return re.search(self.matcher.bus, record.bus_token) is not None

    def matches_identity(self, record: BindingRecord) -> bool:
        return re.search(self.matcher.idents, record.ident_token) is not None

    def attribute(self, records: Iterable[BindingRecord]) -> bool:
        """
        Resolve `driver_names` from `records`, first match wins.
        Returns True if a driver was found. May only be called once.
        """
        if self._attributed:
            raise RuntimeError("device driver attribution already performed")
        found = []
        for rec in records:
            if self.matches_identity(rec):
                found.append(rec.driver)
                break
        object.__setattr__(self, "driver_names", frozenset(found))
        object.__setattr__(self, "_attributed", True)
        return not self.missing


def merge(
    raw_enumeration: Sequence[Any], binding_records: Sequence[BindingRecord]
) -> Tuple[Tuple[Device, ...], int]:
    """Build one Device per raw record, in input order, and count attributions."""
    devices = []
    attributed = 0
    for raw in raw_enumeration:
        d = Device(raw)
        if d.attribute(binding_records):
            attributed += 1
        devices.append(d)
    log.info("%d devices have procfs-discernible drivers", attributed)
    return tuple(devices), attributed


__all__ = ["Device", "merge", "matcher_of"]
