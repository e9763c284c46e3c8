#
# Driver binding records from /proc/bus/pci/devices.
#
# Each line is one PCI function:
#   <bus><devfn>  <vendor><device>  <irq>  <7 base addrs>  <7 sizes>  [driver]
# All fields are whitespace separated. When no driver is bound the line ends
# on a numeric field, so a last field with no non-digit character means
# "unbound".
#
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple

from ..errors import MalformedBindingRecord, UnreadableBindingSource

log = logging.getLogger(__name__)

PROC_DEVICES_DEFAULT = "/proc/bus/pci/devices"

# bus token, identity token, last field
MIN_FIELDS = 3

_NON_DIGIT = re.compile(r"\D")


@dataclass(frozen=True, slots=True)
class BindingRecord:
    fields: Tuple[str, ...]

    @property
    def bus_token(self) -> str:
        return self.fields[0]

    @property
    def ident_token(self) -> str:
        return self.fields[1]

    @property
    def driver(self) -> str:
        return self.fields[-1]

    @property
    def has_driver(self) -> bool:
        return bool(_NON_DIGIT.search(self.driver))


def parse_line(line: str) -> BindingRecord:
    fields = tuple(line.split())
    if len(fields) < MIN_FIELDS:
        raise MalformedBindingRecord(
            f"expected at least {MIN_FIELDS} fields, got {len(fields)}: {line!r}"
        )
    return BindingRecord(fields)


def parse_lines(lines: Iterable[str]) -> Tuple[BindingRecord, ...]:
    """Parse binding lines, keeping only records that name a driver."""
    out = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            rec = parse_line(line)
        except MalformedBindingRecord as e:
            log.warning("skipping binding line %d: %s", lineno, e)
            continue
        if rec.has_driver:
            out.append(rec)
    return tuple(out)


class BindingReader:
    """Re-reads the binding interface in full on every `read()`."""

    def __init__(self, path: str = PROC_DEVICES_DEFAULT) -> None:
        self.path = Path(path)

    def read(self) -> Tuple[BindingRecord, ...]:
        try:
            text = self.path.read_text(encoding="ascii", errors="replace")
        except OSError as e:
            raise UnreadableBindingSource(
                f"cannot read driver bindings from {self.path}: {e}"
            ) from e
        records = parse_lines(text.split("\n"))
        log.debug("%s: %d bound functions", self.path, len(records))
        return records


__all__ = ["BindingRecord", "BindingReader", "parse_line", "parse_lines"]
