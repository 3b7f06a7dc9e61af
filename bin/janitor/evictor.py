#!/usr/bin/env python3
"""Delete (or pretend to delete) scanned candidates."""

from __future__ import annotations

import logging
import stat
from dataclasses import dataclass
from typing import Iterable

import humanfriendly

from janitor.scanner import FileCandidate

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvictionResult:
    """Counts for one batch of candidates.

    In dry-run mode deleted_count/deleted_bytes describe what would have been removed, with
    bytes taken from the scan-time sizes.
    """

    considered_count: int = 0
    deleted_count: int = 0
    deleted_bytes: int = 0
    failed_count: int = 0


def _delete_one(candidate: FileCandidate, verbose: bool) -> tuple[bool | None, int]:
    """Try to remove one file.

    Returns:
        (deleted, size) where deleted is None if the file was already gone or replaced
    """
    path = candidate.path
    try:
        file_stat = path.lstat()
    except FileNotFoundError:
        _LOGGER.debug("File no longer exists: %s", path)
        return None, 0
    except OSError as e:
        _LOGGER.debug("Could not stat %s before deletion, using scanned size: %s", path, e)
        size = candidate.size_bytes
    else:
        if not stat.S_ISREG(file_stat.st_mode):
            _LOGGER.debug("No longer a regular file, skipping: %s", path)
            return None, 0
        size = file_stat.st_size

    try:
        path.unlink()
    except FileNotFoundError:
        _LOGGER.debug("File disappeared before deletion: %s", path)
        return None, 0
    except OSError as e:
        _LOGGER.warning("Failed to delete file %s: %s", path, e)
        return False, 0

    _LOGGER.log(
        logging.INFO if verbose else logging.DEBUG,
        "Deleted file: %s (size: %s)",
        path,
        humanfriendly.format_size(size, binary=True),
    )
    return True, size


def evict(candidates: Iterable[FileCandidate], dry_run: bool, verbose: bool = False) -> EvictionResult:
    """Delete candidates in order, tolerating failures on individual files.

    Args:
        candidates: Files to delete, in the order they should be removed
        dry_run: If True, only log what would be deleted
        verbose: Log every per-file decision at INFO rather than DEBUG

    Returns:
        EvictionResult summarising the batch
    """
    considered = 0
    deleted = 0
    deleted_bytes = 0
    failed = 0

    for candidate in candidates:
        considered += 1
        if dry_run:
            _LOGGER.log(
                logging.INFO if verbose else logging.DEBUG,
                "[DRY RUN] Would delete file: %s (size: %s)",
                candidate.path,
                humanfriendly.format_size(candidate.size_bytes, binary=True),
            )
            deleted += 1
            deleted_bytes += candidate.size_bytes
            continue

        if verbose:
            _LOGGER.info("Processing file: %s", candidate.path)
        success, size = _delete_one(candidate, verbose)
        if success:
            deleted += 1
            deleted_bytes += size
        elif success is False:
            failed += 1

    return EvictionResult(
        considered_count=considered, deleted_count=deleted, deleted_bytes=deleted_bytes, failed_count=failed
    )
