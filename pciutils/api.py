from __future__ import annotations
import dataclasses
from typing import Optional
from .backends.procfs import BindingReader
from .backends.sysfs import SysfsProvider
from .cache import PciCache
from .config import Settings, settings_from_env
from .types import PciProvider


def open_cache(
    settings: Optional[Settings] = None,
    *,
    provider: Optional[PciProvider] = None,
    sysfs_root: Optional[str] = None,
    proc_devices: Optional[str] = None,
    lock_timeout: Optional[float] = None,
) -> PciCache:
    """
    Build a PciCache. Settings come from the environment unless given;
    keyword arguments override individual settings. The cache is empty
    until first used.
    """
    s = settings if settings is not None else settings_from_env()
    overrides = {
        k: v
        for k, v in (
            ("sysfs_root", sysfs_root),
            ("proc_devices", proc_devices),
            ("lock_timeout", lock_timeout),
        )
        if v is not None
    }
    if overrides:
        s = dataclasses.replace(s, **overrides)

    if provider is None:
        provider = SysfsProvider(root=s.sysfs_root, slots_root=s.slots_root)
    return PciCache(
        provider, BindingReader(s.proc_devices), lock_timeout=s.lock_timeout
    )


__all__ = ["open_cache"]
