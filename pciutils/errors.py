"""Error kinds raised by pciutils."""

from __future__ import annotations


class PciUtilsError(Exception):
    """Base error for pciutils."""


class ProviderUnavailable(PciUtilsError):
    """Raised when the enumeration provider cannot be reached or initialized."""


class UnreadableBindingSource(PciUtilsError, OSError):
    """Raised when the driver-binding interface cannot be read."""


class InvalidFilter(PciUtilsError, ValueError):
    """Raised when a filter set holds an unrecognized class code."""


class MalformedBindingRecord(PciUtilsError, ValueError):
    """Raised for a binding line with too few fields. Recovered by the reader."""


class InvalidQueryMode(PciUtilsError, ValueError):
    """Raised when a query mode is not one of COUNT, VERIFY or LIST."""


class CacheTimeout(PciUtilsError, TimeoutError):
    """Raised when the cache lock is not acquired within the configured timeout."""


class InvalidSetting(PciUtilsError, ValueError):
    """Raised when a PCIUTILS_* environment variable holds an unusable value."""
