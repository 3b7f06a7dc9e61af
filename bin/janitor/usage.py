#!/usr/bin/env python3
"""Filesystem usage probing."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

import humanfriendly

from janitor.errors import UsageUnreadableError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiskDetails:
    """Byte counts for the filesystem holding a mount point."""

    total: int
    used: int
    available: int

    def describe(self) -> str:
        return (
            f"Used: {humanfriendly.format_size(self.used, binary=True)}, "
            f"Available: {humanfriendly.format_size(self.available, binary=True)}, "
            f"Total: {humanfriendly.format_size(self.total, binary=True)}"
        )


def details(mount_point: Path) -> DiskDetails:
    """Return total/used/available bytes for the filesystem containing mount_point.

    Raises:
        UsageUnreadableError: If the path doesn't exist or the OS can't report usage
    """
    try:
        if not mount_point.exists():
            raise UsageUnreadableError(mount_point, "path does not exist")
        usage = shutil.disk_usage(mount_point)
    except OSError as e:
        raise UsageUnreadableError(mount_point, str(e)) from e
    return DiskDetails(total=usage.total, used=usage.used, available=usage.free)


def percent_used(disk: DiskDetails) -> int:
    """Usage percentage as df reports it: used / (used + available), rounded up.

    Reserved blocks are excluded from the denominator, so this can exceed used / total.
    """
    usable = disk.used + disk.available
    if usable <= 0:
        raise ValueError("filesystem reports no usable capacity")
    return -(-disk.used * 100 // usable)


def measure(mount_point: Path) -> int:
    """Measure the percentage used of the filesystem holding mount_point.

    Never cached; every call queries the filesystem afresh.

    Raises:
        UsageUnreadableError: If usage can't be determined or isn't a valid percentage
    """
    _LOGGER.debug("Getting disk usage for path: %s", mount_point)
    disk = details(mount_point)
    try:
        percent = percent_used(disk)
    except ValueError as e:
        raise UsageUnreadableError(mount_point, str(e)) from e
    if not 0 <= percent <= 100:
        raise UsageUnreadableError(mount_point, f"invalid usage percentage {percent}")
    _LOGGER.debug("Disk usage for %s: %d%%", mount_point, percent)
    return percent
