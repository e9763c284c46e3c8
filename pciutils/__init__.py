"""
pciutils — cached PCI device inventory with kernel driver attribution.

Public API:
    - Cache & factory:
        PciCache, open_cache
    - Query modes and filter codes:
        QueryMode, PciClass
    - Merged devices and their sources:
        Device, merge, PciRecord, PciAddress, BindingRecord, BindingReader
    - Providers (if callers want to build the cache by hand):
        PciProvider, SysfsProvider
"""

from __future__ import annotations

# Version from installed dist; falls back to dev string when run from source tree.
from importlib.metadata import version, PackageNotFoundError

try:  # pragma: no cover
    __version__ = version("pciutils")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0.dev0"

# Public API re-exports
from .api import open_cache
from .backends.procfs import BindingReader, BindingRecord
from .backends.sysfs import SysfsProvider
from .cache import PciCache, Snapshot
from .config import Settings, settings_from_env
from .device import Device, merge
from .errors import (
    CacheTimeout,
    InvalidFilter,
    InvalidQueryMode,
    InvalidSetting,
    MalformedBindingRecord,
    PciUtilsError,
    ProviderUnavailable,
    UnreadableBindingSource,
)
from .sysfs import PciAddress, PciRecord, SysfsEnumerator
from .types import Matcher, PciClass, PciProvider, QueryMode

__all__ = [
    "__version__",
    # Cache/factory
    "PciCache",
    "Snapshot",
    "open_cache",
    "Settings",
    "settings_from_env",
    # Modes/filters
    "QueryMode",
    "PciClass",
    # Devices
    "Device",
    "Matcher",
    "merge",
    "PciRecord",
    "PciAddress",
    "BindingRecord",
    "BindingReader",
    # Providers
    "PciProvider",
    "SysfsProvider",
    "SysfsEnumerator",
    # Errors
    "PciUtilsError",
    "ProviderUnavailable",
    "UnreadableBindingSource",
    "InvalidFilter",
    "MalformedBindingRecord",
    "InvalidQueryMode",
    "CacheTimeout",
    "InvalidSetting",
]
