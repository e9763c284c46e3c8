#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import json
import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pciutils
from pciutils.backends.procfs import PROC_DEVICES_DEFAULT
from pciutils.sysfs import SYSFS_DEVICES_DEFAULT


@dataclass
class ProgramArgs:
    sysfs_path: Optional[str] = None
    proc_path: Optional[str] = None
    count: bool = False
    verify: bool = False
    filters: List[int] = field(default_factory=list)
    verbose: bool = False


def parse_class_code(s: str) -> int:
    """Accept a PciClass name ("network") or a number ("2", "0x02")."""
    try:
        return pciutils.PciClass[s.upper()].value
    except KeyError:
        pass
    try:
        return int(s, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"unknown class code: {s}") from None


def device_to_dict(dev: pciutils.Device) -> Dict[str, Any]:
    raw = dev.raw_data
    out = dict(raw) if isinstance(raw, Mapping) else raw.as_dict()
    out["drivers"] = sorted(dev.driver_names)
    return out


def run(args: ProgramArgs) -> int:
    try:
        cache = pciutils.open_cache(
            sysfs_root=args.sysfs_path, proc_devices=args.proc_path
        )
        if args.filters:
            cache.set_filters(args.filters)
        if args.count:
            payload: Any = {"count": cache.stat(pciutils.QueryMode.COUNT)}
        elif args.verify:
            payload = {"modalias": list(cache.update(pciutils.QueryMode.VERIFY))}
        else:
            devices = cache.stat(pciutils.QueryMode.LIST)
            payload = {
                "filters": sorted(int(c) for c in cache.active_filters),
                "attributed": cache.attributed_count,
                "devices": [device_to_dict(d) for d in devices],
            }
    except pciutils.PciUtilsError as e:
        print(f"pciutils: {e}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


def main() -> None:  # pragma: no cover
    ap = argparse.ArgumentParser(
        description="PCI device inventory with kernel driver attribution (JSON)"
    )
    ap.add_argument(
        "--sysfs",
        dest="sysfs_path",
        default=None,
        help=f"path to the sysfs PCI device directory (default {SYSFS_DEVICES_DEFAULT})",
    )
    ap.add_argument(
        "--proc",
        dest="proc_path",
        default=None,
        help=f"path to the driver binding file (default {PROC_DEVICES_DEFAULT})",
    )
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--count", action="store_true", help="print the device count")
    mode.add_argument(
        "--verify", action="store_true", help="print the modalias of each device"
    )
    ap.add_argument(
        "--filter",
        dest="filters",
        action="append",
        type=parse_class_code,
        default=[],
        metavar="CLASS",
        help="only include this base class (name or code); repeatable",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="log at INFO level")
    args = ProgramArgs(**vars(ap.parse_args()))
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    sys.exit(run(args))


if __name__ == "__main__":  # pragma: no cover
    main()
