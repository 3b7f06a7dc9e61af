#!/usr/bin/env python3
"""Find files old enough to be reclaimed."""

from __future__ import annotations

import datetime
import heapq
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

_LOGGER = logging.getLogger(__name__)

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


@dataclass(frozen=True)
class FileCandidate:
    """A regular file eligible for deletion, as seen at scan time."""

    path: Path
    modification_time: datetime.datetime
    size_bytes: int


def mtime_from_ns(mtime_ns: int) -> datetime.datetime:
    """Convert an st_mtime_ns value to an aware UTC datetime.

    Rounds up to the next microsecond so a file never looks older than it is.
    """
    return EPOCH + datetime.timedelta(microseconds=-(-mtime_ns // 1000))


def _walk_files(root: Path) -> Iterator[os.DirEntry]:
    """Yield regular files under root at any depth, without following symlinks."""
    pending = [root]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            pending.append(Path(entry.path))
                        elif entry.is_file(follow_symlinks=False):
                            yield entry
                    except OSError as e:
                        _LOGGER.debug("Skipping unreadable entry %s: %s", entry.path, e)
        except OSError as e:
            _LOGGER.debug("Skipping unreadable directory %s: %s", current, e)


def iter_eligible(
    directory: Path, retention: datetime.timedelta, now: datetime.datetime
) -> Iterator[FileCandidate]:
    for entry in _walk_files(directory):
        try:
            stat = entry.stat(follow_symlinks=False)
        except OSError as e:
            # Typically the file vanished between listing and stat.
            _LOGGER.debug("Could not stat %s: %s", entry.path, e)
            continue
        mtime = mtime_from_ns(stat.st_mtime_ns)
        if now - mtime > retention:
            yield FileCandidate(path=Path(entry.path), modification_time=mtime, size_bytes=stat.st_size)


def scan(
    directory: Path,
    retention: datetime.timedelta,
    batch_size: int,
    now: datetime.datetime | None = None,
) -> list[FileCandidate]:
    """Find up to batch_size files under directory older than retention, oldest first.

    Only regular files are considered; symlinks, devices and the like are ignored, and
    symlinked directories are not followed. A file exactly `retention` old is not eligible.
    Ties in modification time are ordered by path.

    Args:
        directory: Root to search recursively
        retention: Minimum age a file must strictly exceed
        batch_size: Maximum number of candidates to return
        now: Reference time (defaults to the current time)

    Returns:
        Candidates ordered by ascending modification time; empty if the directory doesn't exist
        or can't be accessed
    """
    try:
        is_dir = directory.is_dir()
    except OSError as e:
        _LOGGER.warning("Cannot access directory %s: %s", directory, e)
        return []
    if not is_dir:
        _LOGGER.warning("Directory does not exist: %s", directory)
        return []

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)

    _LOGGER.debug(
        "Scanning %s for files older than %s (batch size %d)", directory, retention, batch_size
    )
    candidates = heapq.nsmallest(
        batch_size,
        iter_eligible(directory, retention, now),
        key=lambda candidate: (candidate.modification_time, str(candidate.path)),
    )
    _LOGGER.debug("Found %d eligible files in %s", len(candidates), directory)
    return candidates
