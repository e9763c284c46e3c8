"""
PciCache: the queryable snapshot of PCI devices with driver attribution.

Enumeration and the driver-binding read are both expensive, and devices or
drivers rarely change at runtime, so a cache is populated once on first
use and only refreshed on an explicit `update()` or a filter change. Hot
plug or live driver rebinding is picked up by calling `update()`.

The raw enumeration, the binding records and the merged devices of one
refresh are held together in a single immutable snapshot. Readers take a
reference to the current snapshot and never see a mix of generations.
Every provider call, binding read and snapshot replacement happens under
one exclusive lock; reading a populated snapshot does not lock.
"""

from __future__ import annotations
import contextlib
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from .backends.procfs import BindingReader, BindingRecord
from .device import Device, merge
from .errors import CacheTimeout
from .types import FilterSet, PciProvider, QueryMode, validate_filters

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    raw_enumeration: Tuple[Any, ...]
    binding_records: Tuple[BindingRecord, ...]
    merged_devices: Tuple[Device, ...]
    attributed_count: int


class PciCache:
    def __init__(
        self,
        provider: PciProvider,
        reader: BindingReader,
        *,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self._provider = provider
        self._reader = reader
        self._lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._snapshot: Optional[Snapshot] = None
        self._filters: FilterSet = frozenset()

    # ----- locking -----
    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        timeout = -1 if self._lock_timeout is None else self._lock_timeout
        if not self._lock.acquire(timeout=timeout):
            raise CacheTimeout(
                f"cache lock not acquired within {self._lock_timeout} seconds"
            )
        try:
            yield
        finally:
            self._lock.release()

    def _refresh(self) -> Tuple[Device, ...]:
        # caller holds the lock
        raw = tuple(self._provider.enumerate(QueryMode.LIST, self._filters))
        bindings = tuple(self._reader.read())
        merged, attributed = merge(raw, bindings)
        self._snapshot = Snapshot(raw, bindings, merged, attributed)
        log.debug(
            "cache refreshed: %d devices, %d binding records, filters=%s",
            len(merged),
            len(bindings),
            sorted(self._filters),
        )
        return merged

    def _populated_snapshot(self) -> Snapshot:
        snap = self._snapshot
        if snap is not None:
            return snap
        with self._locked():
            if self._snapshot is None:
                self._refresh()
            assert self._snapshot is not None
            return self._snapshot

    # ----- public surface -----
    def stat(
        self, mode: Union[QueryMode, int] = QueryMode.LIST
    ) -> Union[Tuple[Device, ...], int, Any]:
        """
        Cached view. LIST returns the merged devices, COUNT their number.
        VERIFY is never cached and is passed straight to `update()`.
        The cache is populated first if it has never been.
        """
        mode = QueryMode.coerce(mode)
        snap = self._populated_snapshot()
        if mode is QueryMode.LIST:
            return snap.merged_devices
        if mode is QueryMode.COUNT:
            return len(snap.merged_devices)
        return self.update(mode)

    def update(
        self, mode: Union[QueryMode, int] = QueryMode.LIST
    ) -> Union[Tuple[Device, ...], int, Any]:
        """
        Ask the provider again. LIST rebuilds the whole snapshot; COUNT and
        VERIFY return the provider's answer and leave the snapshot alone.
        """
        mode = QueryMode.coerce(mode)
        with self._locked():
            if mode is QueryMode.LIST:
                return self._refresh()
            if mode is QueryMode.COUNT:
                return self._provider.enumerate(QueryMode.COUNT, self._filters)
            if mode is QueryMode.VERIFY:
                return self._provider.enumerate(QueryMode.VERIFY, self._filters)
        raise AssertionError(f"unhandled query mode {mode!r}")  # pragma: no cover

    def get_filters(self) -> FilterSet:
        with self._locked():
            return frozenset(self._provider.get_filters())

    def set_filters(self, filters: Any) -> FilterSet:
        new = validate_filters(filters)
        with self._locked():
            self._apply_filters(new)
        return new

    def clear_filters(self) -> FilterSet:
        with self._locked():
            self._apply_filters(frozenset())
        return frozenset()

    def _apply_filters(self, new: FilterSet) -> None:
        # caller holds the lock; a failed refresh rolls the filters back
        old = self._filters
        self._push_filters(new)
        self._filters = new
        try:
            self._refresh()
        except Exception:
            log.warning("refresh after filter change failed; restoring %s", sorted(old))
            try:
                self._push_filters(old)
            except Exception:
                # provider still holds `new`, and so does self._filters
                log.exception("could not restore provider filters %s", sorted(old))
            else:
                self._filters = old
            raise

    def _push_filters(self, filters: FilterSet) -> None:
        if filters:
            self._provider.set_filters(filters)
        else:
            self._provider.clear_filters()

    # ----- generation accessors -----
    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def populated(self) -> bool:
        return self._snapshot is not None

    @property
    def raw_enumeration(self) -> Optional[Tuple[Any, ...]]:
        snap = self._snapshot
        return snap.raw_enumeration if snap else None

    @property
    def binding_records(self) -> Optional[Tuple[BindingRecord, ...]]:
        snap = self._snapshot
        return snap.binding_records if snap else None

    @property
    def merged_devices(self) -> Optional[Tuple[Device, ...]]:
        snap = self._snapshot
        return snap.merged_devices if snap else None

    @property
    def attributed_count(self) -> Optional[int]:
        snap = self._snapshot
        return snap.attributed_count if snap else None

    @property
    def active_filters(self) -> FilterSet:
        return self._filters

    # Convenience queries
    def find_by_bdf(self, bdf: str) -> Optional[Device]:
        for d in self._populated_snapshot().merged_devices:
            raw = d.raw_data
            if isinstance(raw, Mapping):
                name = raw.get("dev_name")
            else:
                name = getattr(raw, "dev_name", None)
            if name == bdf:
                return d
        return None

    def find_by_driver(self, driver: str) -> List[Device]:
        devs = self._populated_snapshot().merged_devices
        return [d for d in devs if driver in d.driver_names]

    def find_by_vendor(
        self, vendor_id: int, device_id: Optional[int] = None
    ) -> List[Device]:
        ident = f"{vendor_id & 0xFFFF:04x}"
        if device_id is not None:
            ident += f"{device_id & 0xFFFF:04x}"
        return [
            d
            for d in self._populated_snapshot().merged_devices
            if d.matcher.idents.startswith(ident)
        ]


__all__ = ["PciCache", "Snapshot"]
