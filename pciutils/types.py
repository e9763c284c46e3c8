from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from collections.abc import Iterable
from typing import Any, FrozenSet, Protocol, Union, runtime_checkable

from .errors import InvalidFilter, InvalidQueryMode


class QueryMode(IntEnum):
    # fmt: off
    COUNT  = 1  # number of functions passing the filter
    VERIFY = 2  # modalias per function, for alias verification
    LIST   = 3  # full device records
    # fmt: on

    @classmethod
    def coerce(cls, mode: Union["QueryMode", int]) -> "QueryMode":
        if isinstance(mode, bool) or not isinstance(mode, int):
            raise InvalidQueryMode(f"invalid query mode: {mode!r}")
        try:
            return cls(mode)
        except (ValueError, TypeError) as e:
            raise InvalidQueryMode(f"invalid query mode: {mode!r}") from e


class PciClass(IntEnum):
    # fmt: off
    # PCI base class codes (upper byte of the 24-bit class register)
    NOT_DEFINED   = 0x00
    STORAGE       = 0x01
    NETWORK       = 0x02
    DISPLAY       = 0x03
    MULTIMEDIA    = 0x04
    MEMORY        = 0x05
    BRIDGE        = 0x06
    COMMUNICATION = 0x07
    SYSTEM        = 0x08
    INPUT         = 0x09
    DOCKING       = 0x0A
    PROCESSOR     = 0x0B
    SERIAL        = 0x0C
    WIRELESS      = 0x0D
    INTELLIGENT   = 0x0E
    SATELLITE     = 0x0F
    CRYPT         = 0x10
    SIGNAL        = 0x11
    OTHERS        = 0xFF
    # fmt: on


FilterSet = FrozenSet[PciClass]


def validate_filters(filters: Any) -> FilterSet:
    """
    Normalize `filters` to a frozenset of PciClass.

    Accepts any iterable collection of PciClass members or plain ints.
    Strings, bytes, mappings and scalars are rejected, as is any code
    outside PciClass. Nothing is forwarded anywhere on failure.
    """
    if isinstance(filters, (str, bytes, bytearray, dict)) or not isinstance(
        filters, Iterable
    ):
        raise InvalidFilter(f"filters must be a collection of class codes: {filters!r}")
    out = set()
    for code in filters:
        # bool is an int subclass; True/False are never class codes
        if isinstance(code, bool) or not isinstance(code, int):
            raise InvalidFilter(f"filter code must be an integer: {code!r}")
        try:
            out.add(PciClass(code))
        except ValueError as e:
            raise InvalidFilter(f"unrecognized filter code: 0x{code:02x}") from e
    return frozenset(out)


@dataclass(frozen=True, slots=True)
class Matcher:
    """Lookup patterns tying an enumerated function to its binding line."""

    bus: str  # "%02x%02x" bus, devfn
    idents: str  # "%04x%04x" vendor, device


@runtime_checkable
class PciProvider(Protocol):
    """Capability interface of an enumeration provider."""

    def enumerate(self, mode: QueryMode, filters: FilterSet) -> Any: ...

    def get_filters(self) -> FilterSet: ...

    def set_filters(self, filters: Iterable[int]) -> FilterSet: ...

    def clear_filters(self) -> FilterSet: ...


__all__ = [
    "QueryMode",
    "PciClass",
    "FilterSet",
    "Matcher",
    "PciProvider",
    "validate_filters",
]
