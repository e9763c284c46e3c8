"""
Data source backends.

`sysfs` enumerates PCI functions (the provider the cache talks to) and
`procfs` reads the kernel's driver binding table.
"""

from __future__ import annotations

from .procfs import BindingReader, BindingRecord
from .sysfs import SysfsProvider

__all__ = ["BindingReader", "BindingRecord", "SysfsProvider"]
