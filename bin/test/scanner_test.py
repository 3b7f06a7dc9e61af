#!/usr/bin/env python3
"""Tests for the eligibility scanner."""

from __future__ import annotations

import datetime
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

from janitor.scanner import FileCandidate, iter_eligible, mtime_from_ns, scan

NOW = datetime.datetime(2025, 6, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)
HOUR = datetime.timedelta(hours=1)


def test_missing_directory_returns_empty(tmp_path):
    assert scan(tmp_path / "nope", HOUR, 10, now=NOW) == []


def test_file_path_instead_of_directory_returns_empty(tmp_path, make_file):
    not_a_dir = make_file(tmp_path / "file", 2 * HOUR, now=NOW)
    assert scan(not_a_dir, HOUR, 10, now=NOW) == []


def test_only_files_older_than_retention(tmp_path, make_file):
    old = make_file(tmp_path / "old.tmp", 2 * HOUR, now=NOW)
    make_file(tmp_path / "new.tmp", datetime.timedelta(minutes=5), now=NOW)

    result = scan(tmp_path, HOUR, 10, now=NOW)

    assert [c.path for c in result] == [old]


def test_retention_boundary_is_strict(tmp_path, make_file):
    make_file(tmp_path / "exact", HOUR, now=NOW)
    older = make_file(tmp_path / "older", HOUR + datetime.timedelta(microseconds=1), now=NOW)

    result = scan(tmp_path, HOUR, 10, now=NOW)

    assert [c.path for c in result] == [older]


def test_oldest_first_with_path_tiebreak(tmp_path, make_file):
    make_file(tmp_path / "b", 3 * HOUR, now=NOW)
    make_file(tmp_path / "a", 3 * HOUR, now=NOW)
    make_file(tmp_path / "oldest", 5 * HOUR, now=NOW)
    make_file(tmp_path / "young", 2 * HOUR, now=NOW)

    result = scan(tmp_path, HOUR, 10, now=NOW)

    assert [c.path.name for c in result] == ["oldest", "a", "b", "young"]


def test_truncates_to_batch_size(tmp_path, make_file):
    for i in range(5):
        make_file(tmp_path / f"f{i}", (10 - i) * HOUR, now=NOW)

    result = scan(tmp_path, HOUR, 2, now=NOW)

    assert [c.path.name for c in result] == ["f0", "f1"]


def test_recurses_into_nested_directories(tmp_path, make_file):
    deep = make_file(tmp_path / "a" / "b" / "c" / "d" / "deep.log", 4 * HOUR, now=NOW)
    shallow = make_file(tmp_path / "shallow.log", 2 * HOUR, now=NOW)

    result = scan(tmp_path, HOUR, 10, now=NOW)

    assert [c.path for c in result] == [deep, shallow]


def test_candidate_records_size_and_mtime(tmp_path, make_file):
    path = make_file(tmp_path / "sized", 2 * HOUR, size=1234, now=NOW)

    (candidate,) = scan(tmp_path, HOUR, 10, now=NOW)

    assert candidate == FileCandidate(path=path, modification_time=NOW - 2 * HOUR, size_bytes=1234)


def test_ignores_directories_and_symlinks(tmp_path, make_file):
    outside = tmp_path / "outside"
    target = make_file(outside / "target", 2 * HOUR, now=NOW)
    root = tmp_path / "root"
    old_dir = root / "old_dir"
    old_dir.mkdir(parents=True)
    link_to_file = root / "link_to_file"
    link_to_file.symlink_to(target)
    link_to_dir = root / "link_to_dir"
    link_to_dir.symlink_to(outside, target_is_directory=True)
    for path in (old_dir, link_to_file, link_to_dir):
        os.utime(path, (0, 0), follow_symlinks=False)

    assert scan(root, HOUR, 10, now=NOW) == []


def test_ignores_fifos(tmp_path, make_file):
    os.mkfifo(tmp_path / "pipe")
    os.utime(tmp_path / "pipe", (0, 0))
    regular = make_file(tmp_path / "regular", 2 * HOUR, now=NOW)

    assert [c.path for c in scan(tmp_path, HOUR, 10, now=NOW)] == [regular]


def test_unreadable_subdirectory_is_skipped(tmp_path, make_file):
    blocked = tmp_path / "blocked"
    make_file(blocked / "hidden", 3 * HOUR, now=NOW)
    visible = make_file(tmp_path / "open" / "visible", 2 * HOUR, now=NOW)
    real_scandir = os.scandir

    def flaky_scandir(path):
        if Path(path) == blocked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    with patch("janitor.scanner.os.scandir", side_effect=flaky_scandir):
        result = scan(tmp_path, HOUR, 10, now=NOW)

    assert [c.path for c in result] == [visible]


def test_file_vanishing_before_stat_is_skipped(tmp_path, make_file):
    survivor = make_file(tmp_path / "survivor", 2 * HOUR, now=NOW)
    vanished = MagicMock()
    vanished.path = str(tmp_path / "vanished")
    vanished.stat.side_effect = FileNotFoundError(2, "No such file or directory")
    with os.scandir(tmp_path) as entries:
        survivor_entry = next(e for e in entries if e.name == "survivor")

    with patch("janitor.scanner._walk_files", return_value=iter([vanished, survivor_entry])):
        result = list(iter_eligible(tmp_path, HOUR, NOW))

    assert [c.path for c in result] == [survivor]


def test_mtime_rounds_up_to_microsecond():
    assert mtime_from_ns(1_000_000_001) == datetime.datetime(
        1970, 1, 1, 0, 0, 1, 1, tzinfo=datetime.timezone.utc
    )
    assert mtime_from_ns(1_000_000_000) == datetime.datetime(1970, 1, 1, 0, 0, 1, tzinfo=datetime.timezone.utc)


def test_inaccessible_directory_returns_empty(tmp_path, make_file, caplog):
    locked = tmp_path / "locked"
    make_file(locked / "old", 2 * HOUR, now=NOW)
    real_is_dir = Path.is_dir

    def denied(self, *args, **kwargs):
        if self == locked:
            raise PermissionError(13, "Permission denied", str(self))
        return real_is_dir(self, *args, **kwargs)

    with patch.object(Path, "is_dir", autospec=True, side_effect=denied):
        assert scan(locked, HOUR, 10, now=NOW) == []

    assert "Cannot access directory" in caplog.text


def test_overlong_directory_name_returns_empty(tmp_path):
    too_long = tmp_path / ("x" * 300)
    with patch.object(Path, "is_dir", side_effect=OSError(36, "File name too long")):
        assert scan(too_long, HOUR, 10, now=NOW) == []
