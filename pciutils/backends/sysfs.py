from __future__ import annotations
import logging
from typing import Iterable, Tuple, Union

from ..errors import ProviderUnavailable
from ..sysfs import SYSFS_DEVICES_DEFAULT, SYSFS_SLOTS_DEFAULT, PciRecord, SysfsEnumerator
from ..types import FilterSet, QueryMode, validate_filters

log = logging.getLogger(__name__)


class SysfsProvider:
    """
    Enumeration provider over /sys/bus/pci/devices.

    Holds the active class filter set. `enumerate()` applies the filters it
    is given, so the cache stays the owner of what is in effect for a call.
    """

    def __init__(
        self,
        root: str = SYSFS_DEVICES_DEFAULT,
        slots_root: str = SYSFS_SLOTS_DEFAULT,
    ) -> None:
        self._enumerator = SysfsEnumerator(root=root, slots_root=slots_root)
        self._filters: FilterSet = frozenset()

    @property
    def root(self) -> str:
        return str(self._enumerator.root)

    def _scan(self, filters: FilterSet) -> Tuple[PciRecord, ...]:
        try:
            devs = self._enumerator.scan(filters)
        except OSError as e:
            raise ProviderUnavailable(
                f"cannot enumerate PCI devices under {self.root}: {e}"
            ) from e
        return tuple(devs[k] for k in sorted(devs, key=lambda b: devs[b].bdf))

    def enumerate(
        self, mode: QueryMode, filters: FilterSet
    ) -> Union[Tuple[PciRecord, ...], int, Tuple[str, ...]]:
        mode = QueryMode.coerce(mode)
        filters = validate_filters(filters)
        records = self._scan(filters)
        log.debug("sysfs scan: %d functions (filters=%s)", len(records), sorted(filters))
        if mode is QueryMode.LIST:
            return records
        if mode is QueryMode.COUNT:
            return len(records)
        if mode is QueryMode.VERIFY:
            return tuple(r.modalias for r in records)
        raise AssertionError(f"unhandled query mode {mode!r}")  # pragma: no cover

    def get_filters(self) -> FilterSet:
        return self._filters

    def set_filters(self, filters: Iterable[int]) -> FilterSet:
        self._filters = validate_filters(filters)
        return self._filters

    def clear_filters(self) -> FilterSet:
        return self.set_filters(())


__all__ = ["SysfsProvider"]
