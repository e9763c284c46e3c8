from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .backends.procfs import PROC_DEVICES_DEFAULT
from .errors import InvalidSetting
from .sysfs import SYSFS_DEVICES_DEFAULT, SYSFS_SLOTS_DEFAULT


@dataclass(frozen=True)
class Settings:
    sysfs_root: str = SYSFS_DEVICES_DEFAULT
    slots_root: str = SYSFS_SLOTS_DEFAULT
    proc_devices: str = PROC_DEVICES_DEFAULT
    lock_timeout: Optional[float] = None  # seconds; None waits forever


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        t = float(value)
    except ValueError:
        raise InvalidSetting(f"PCIUTILS_LOCK_TIMEOUT is not a number: {value!r}") from None
    if t < 0:
        raise InvalidSetting(f"PCIUTILS_LOCK_TIMEOUT must not be negative: {value!r}")
    return t


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from PCIUTILS_* variables:
      PCIUTILS_SYSFS, PCIUTILS_SLOTS, PCIUTILS_PROC, PCIUTILS_LOCK_TIMEOUT
    Unset or empty variables keep the defaults.
    """
    env = os.environ if environ is None else environ
    return Settings(
        sysfs_root=env.get("PCIUTILS_SYSFS") or SYSFS_DEVICES_DEFAULT,
        slots_root=env.get("PCIUTILS_SLOTS") or SYSFS_SLOTS_DEFAULT,
        proc_devices=env.get("PCIUTILS_PROC") or PROC_DEVICES_DEFAULT,
        lock_timeout=_parse_timeout(env.get("PCIUTILS_LOCK_TIMEOUT")),
    )


__all__ = ["Settings", "settings_from_env"]
