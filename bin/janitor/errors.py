#!/usr/bin/env python3
"""Error types raised by the janitor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from janitor.controller import CleanupOutcome


class JanitorError(RuntimeError):
    pass


class ConfigInvalidError(JanitorError):
    """Configuration could not be loaded or violates its invariants."""


class UsageUnreadableError(JanitorError):
    """The usage of a mount point could not be determined."""

    def __init__(self, mount_point, reason: str):
        super().__init__(f"Cannot read disk usage for {mount_point}: {reason}")
        self.mount_point = mount_point
        self.reason = reason


class ProbeUnavailableError(JanitorError):
    """Usage was unreadable at a point where the run cannot continue.

    `outcome` holds whatever was accumulated before the run was abandoned; it is
    empty when the initial trigger probe failed.
    """

    def __init__(self, message: str, outcome: CleanupOutcome | None = None):
        super().__init__(message)
        self.outcome = outcome
