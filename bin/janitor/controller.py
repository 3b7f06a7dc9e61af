#!/usr/bin/env python3
"""The reclamation loop: decide whether to clean, then sweep directories in priority order."""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import humanfriendly

from janitor import evictor, scanner, usage
from janitor.config import JanitorConfig
from janitor.errors import ProbeUnavailableError, UsageUnreadableError

_LOGGER = logging.getLogger(__name__)

# Pause between batches so the reported usage can catch up with deletions.
DEFAULT_SETTLE_DELAY = 1.0
MAX_CONSECUTIVE_PROBE_FAILURES = 3


@dataclass(frozen=True)
class CleanupOutcome:
    """Totals for a whole run."""

    dry_run: bool = False
    triggered: bool = False
    target_reached: bool = False
    files_considered: int = 0
    files_deleted: int = 0
    bytes_deleted: int = 0
    files_failed: int = 0
    final_usage: int | None = None

    def merge(self, result: evictor.EvictionResult) -> CleanupOutcome:
        return dataclasses.replace(
            self,
            files_considered=self.files_considered + result.considered_count,
            files_deleted=self.files_deleted + result.deleted_count,
            bytes_deleted=self.bytes_deleted + result.deleted_bytes,
            files_failed=self.files_failed + result.failed_count,
        )


class ReclamationController:
    """Runs one cleanup pass against a validated configuration.

    The probe, scanner, evictor and sleep are injectable so the loop can be driven
    deterministically in tests.
    """

    def __init__(
        self,
        config: JanitorConfig,
        dry_run: bool = False,
        verbose: bool = False,
        probe: Callable[[Path], int] | None = None,
        scan: Callable[..., list[scanner.FileCandidate]] | None = None,
        evict: Callable[..., evictor.EvictionResult] | None = None,
        sleep: Callable[[float], None] | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ):
        self.config = config
        self.dry_run = dry_run
        self.verbose = verbose
        self._probe = probe or usage.measure
        self._scan = scan or scanner.scan
        self._evict = evict or evictor.evict
        self._sleep = sleep or time.sleep
        self.settle_delay = settle_delay
        self._probe_failures = 0

    def should_cleanup(self) -> bool:
        """Check usage against the trigger threshold.

        Raises:
            ProbeUnavailableError: If usage can't be read; never clean from an unknown state
        """
        try:
            current = self._probe(self.config.mount_point)
        except UsageUnreadableError as e:
            _LOGGER.error("Failed to get disk usage, cannot determine if cleanup is needed: %s", e)
            raise ProbeUnavailableError(str(e), CleanupOutcome(dry_run=self.dry_run)) from e

        _LOGGER.info("Current disk usage: %d%%", current)
        if current >= self.config.trigger_threshold:
            _LOGGER.info(
                "Disk usage (%d%%) exceeds trigger threshold (%d%%), starting cleanup",
                current,
                self.config.trigger_threshold,
            )
            return True
        _LOGGER.info(
            "Disk usage (%d%%) does not exceed trigger threshold (%d%%), no cleanup needed",
            current,
            self.config.trigger_threshold,
        )
        return False

    def reached_target(self, outcome: CleanupOutcome) -> bool:
        """Check usage against the target threshold.

        An unreadable value counts as "not reached" so cleaning carries on, but a run of
        consecutive failures abandons the sweep rather than looping indefinitely.
        """
        try:
            current = self._probe(self.config.mount_point)
        except UsageUnreadableError as e:
            self._probe_failures += 1
            _LOGGER.error(
                "Failed to get disk usage, cannot determine if target is reached (%d/%d): %s",
                self._probe_failures,
                MAX_CONSECUTIVE_PROBE_FAILURES,
                e,
            )
            if self._probe_failures >= MAX_CONSECUTIVE_PROBE_FAILURES:
                raise ProbeUnavailableError(
                    f"Disk usage unreadable {self._probe_failures} times in a row, abandoning cleanup", outcome
                ) from e
            return False

        self._probe_failures = 0
        if current <= self.config.target_threshold:
            _LOGGER.info(
                "Disk usage (%d%%) has reached target threshold (%d%%), stopping cleanup",
                current,
                self.config.target_threshold,
            )
            return True
        _LOGGER.debug("Disk usage (%d%%) still above target (%d%%)", current, self.config.target_threshold)
        return False

    def sweep_directory(self, directory: Path, outcome: CleanupOutcome) -> tuple[CleanupOutcome, bool]:
        """Clean one directory batch by batch.

        Returns:
            The updated outcome, and whether the target was reached (which ends the whole sweep)
        """
        _LOGGER.info("Starting cleanup of directory: %s", directory)
        batch_round = 0
        while True:
            if self.reached_target(outcome):
                return outcome, True

            batch = self._scan(directory, self.config.retention, self.config.batch_size)
            if not batch:
                _LOGGER.info("No files found in directory %s that meet deletion criteria", directory)
                return outcome, False

            batch_round += 1
            _LOGGER.info("Found %d files that meet deletion criteria (batch %d)", len(batch), batch_round)
            result = self._evict(batch, self.dry_run, self.verbose)
            outcome = outcome.merge(result)

            if self.dry_run:
                _LOGGER.info("[DRY RUN] Directory %s will delete %d files", directory, result.deleted_count)
                return outcome, False

            _LOGGER.info(
                "Directory %s successfully deleted %d files (total size: %s)",
                directory,
                result.deleted_count,
                humanfriendly.format_size(result.deleted_bytes, binary=True),
            )
            if result.failed_count:
                _LOGGER.warning("Directory %s: %d files could not be deleted", directory, result.failed_count)

            if result.deleted_count == 0:
                _LOGGER.debug("No files deleted from %s, moving to next directory", directory)
                return outcome, False

            _LOGGER.debug("Waiting %.1f seconds for disk usage to update", self.settle_delay)
            self._sleep(self.settle_delay)

    def sweep(self, outcome: CleanupOutcome) -> CleanupOutcome:
        for index, directory in enumerate(self.config.directories, start=1):
            _LOGGER.debug("Processing directory %d/%d: %s", index, len(self.config.directories), directory)
            outcome, target_reached = self.sweep_directory(directory, outcome)
            if target_reached:
                return dataclasses.replace(outcome, target_reached=True)
        _LOGGER.debug("Finished processing all directories")
        return outcome

    def report(self, outcome: CleanupOutcome) -> CleanupOutcome:
        """Log the final totals and, for real runs, the resulting disk usage."""
        if self.dry_run:
            _LOGGER.info(
                "[DRY RUN] Total files to be deleted: %d (%s)",
                outcome.files_deleted,
                humanfriendly.format_size(outcome.bytes_deleted, binary=True),
            )
            return outcome

        _LOGGER.info(
            "Cleanup completed, total files deleted: %d, freed %s",
            outcome.files_deleted,
            humanfriendly.format_size(outcome.bytes_deleted, binary=True),
        )
        if outcome.files_failed:
            _LOGGER.warning("%d files could not be deleted", outcome.files_failed)

        try:
            final_usage = self._probe(self.config.mount_point)
        except UsageUnreadableError as e:
            _LOGGER.warning("Failed to get final disk usage: %s", e)
            return outcome

        _LOGGER.info("Final disk usage: %d%%", final_usage)
        try:
            _LOGGER.info("Disk details: %s", usage.details(self.config.mount_point).describe())
        except UsageUnreadableError as e:
            _LOGGER.debug("Could not get disk details: %s", e)
        return dataclasses.replace(outcome, final_usage=final_usage)

    def run(self) -> CleanupOutcome:
        """Run a full cleanup pass.

        Raises:
            ProbeUnavailableError: If usage can't be read before starting, or keeps failing mid-sweep
        """
        outcome = CleanupOutcome(dry_run=self.dry_run)
        if not self.should_cleanup():
            return outcome

        outcome = dataclasses.replace(outcome, triggered=True)
        outcome = self.sweep(outcome)
        return self.report(outcome)


def run(config: JanitorConfig, dry_run: bool, verbose: bool = False, **kwargs) -> CleanupOutcome:
    """Run one cleanup pass; see ReclamationController for the injectable collaborators."""
    return ReclamationController(config, dry_run=dry_run, verbose=verbose, **kwargs).run()
