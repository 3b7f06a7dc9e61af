from __future__ import annotations

import datetime
import os
from pathlib import Path

import pytest
from janitor.scanner import EPOCH


def set_mtime(path: Path, when: datetime.datetime) -> None:
    """Set path's mtime to exactly `when` (to the microsecond)."""
    mtime_ns = (when - EPOCH) // datetime.timedelta(microseconds=1) * 1000
    os.utime(path, ns=(mtime_ns, mtime_ns), follow_symlinks=False)


@pytest.fixture
def make_file():
    """Factory creating a file of a given size whose mtime is `age` before `now`."""

    def _make(path: Path, age: datetime.timedelta, size: int = 16, now: datetime.datetime | None = None) -> Path:
        if now is None:
            now = datetime.datetime.now(datetime.timezone.utc)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x" * size)
        set_mtime(path, now - age)
        return path

    return _make
