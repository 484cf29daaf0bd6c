"""Tests for storage path containment and date partitioning."""
import os
from datetime import datetime, timezone

import pytest

from app.files.partition import current_partition
from app.files.paths import PathEscapeError, resolve_path, to_public_path


class TestResolvePath:
    def test_empty_path_is_root(self, tmp_path):
        assert resolve_path(tmp_path, "") == tmp_path
        assert resolve_path(tmp_path, ".") == tmp_path

    def test_dot_dot_inside_root_is_collapsed(self, tmp_path):
        assert resolve_path(tmp_path, "a/b/../c") == tmp_path / "a" / "c"

    def test_redundant_separators_collapsed(self, tmp_path):
        assert resolve_path(tmp_path, "a//b/./c") == tmp_path / "a" / "b" / "c"

    @pytest.mark.parametrize("requested", [
        "../../etc/passwd",
        "..",
        "a/../../b",
        "/etc/passwd",
    ])
    def test_escapes_rejected(self, tmp_path, requested):
        with pytest.raises(PathEscapeError):
            resolve_path(tmp_path, requested)

    def test_sibling_with_shared_prefix_rejected(self, tmp_path):
        root = tmp_path / "files"
        root.mkdir()
        (tmp_path / "files-secret").mkdir()

        with pytest.raises(PathEscapeError):
            resolve_path(root, "../files-secret")

    def test_escape_error_is_permission_error(self, tmp_path):
        with pytest.raises(PermissionError):
            resolve_path(tmp_path, "../x")

    def test_absolute_path_inside_root_is_allowed(self, tmp_path):
        inside = os.path.join(str(tmp_path), "a")
        assert resolve_path(tmp_path, inside) == tmp_path / "a"


def test_to_public_path_uses_forward_slashes():
    assert to_public_path("2023\\11\\14", "1-a.txt") == "2023/11/14/1-a.txt"
    assert to_public_path("2023/11/14/", "/1-a.txt") == "2023/11/14/1-a.txt"


def test_to_public_path_percent_encodes_segments():
    assert to_public_path("2023/11/14", "1-notes #1.txt") == "2023/11/14/1-notes%20%231.txt"
    assert to_public_path("2023/11/14", "1-100%25done.txt") == "2023/11/14/1-100%2525done.txt"
    assert to_public_path("2023/11/14", "1-report.pdf") == "2023/11/14/1-report.pdf"


class TestCurrentPartition:
    def test_creates_year_month_day(self, tmp_path):
        now = datetime(2023, 11, 14, 22, 13, tzinfo=timezone.utc)

        partition = current_partition(tmp_path, now)

        assert partition.relativePath == "2023/11/14"
        assert partition.absolutePath == str(tmp_path / "2023" / "11" / "14")
        assert (tmp_path / "2023" / "11" / "14").is_dir()

    def test_zero_padding(self, tmp_path):
        partition = current_partition(tmp_path, datetime(987, 1, 5))
        assert partition.relativePath == "0987/01/05"

    def test_idempotent_within_a_day(self, tmp_path):
        first = current_partition(tmp_path, datetime(2024, 2, 29, 0, 0, 1))
        second = current_partition(tmp_path, datetime(2024, 2, 29, 23, 59, 59))

        assert first == second

    def test_existing_levels_are_reused(self, tmp_path):
        (tmp_path / "2024" / "02").mkdir(parents=True)
        marker = tmp_path / "2024" / "02" / "keep.txt"
        marker.write_text("x")

        current_partition(tmp_path, datetime(2024, 2, 3))

        assert marker.read_text() == "x"
        assert (tmp_path / "2024" / "02" / "03").is_dir()

    def test_missing_root_is_created(self, tmp_path):
        root = tmp_path / "not-yet"
        partition = current_partition(root, datetime(2024, 1, 1))
        assert os.path.isdir(partition.absolutePath)
