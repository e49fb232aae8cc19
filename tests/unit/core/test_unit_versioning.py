# tests/unit/core/test_unit_versioning.py — v1
"""Tests for core/versioning.py — semantic versions and bump rules."""

from __future__ import annotations

import pytest

from phasekit.core.versioning import (
    BumpKind,
    bump_version,
    classify_bump,
    is_valid_version,
    parse_version,
    version_sort_key,
)


class TestParseVersion:
    def test_plain(self):
        assert parse_version("1.2.3") == (1, 2, 3)

    def test_v_prefix(self):
        assert str(parse_version("v2.0.1")) == "2.0.1"

    @pytest.mark.parametrize("bad", ["1.2", "1.2.3.4", "a.b.c", ""])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_version(bad)
        assert is_valid_version(bad) is False


class TestBump:
    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (BumpKind.MAJOR, "2.0.0"),
            (BumpKind.MINOR, "1.3.0"),
            (BumpKind.PATCH, "1.2.4"),
        ],
    )
    def test_bump_version(self, kind, expected):
        assert bump_version("1.2.3", kind) == expected

    def test_removed_means_major(self):
        assert classify_bump(added=["X"], removed=["Y"]) == BumpKind.MAJOR

    def test_added_means_minor(self):
        assert classify_bump(added=["X"], removed=[]) == BumpKind.MINOR

    def test_otherwise_patch(self):
        assert classify_bump(added=[], removed=[]) == BumpKind.PATCH


class TestSortKey:
    def test_numeric_ordering(self):
        versions = ["1.10.0", "1.2.0", "0.9.9", "draft"]
        assert sorted(versions, key=version_sort_key) == ["0.9.9", "1.2.0", "1.10.0", "draft"]
