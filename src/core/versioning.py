# src/core/versioning.py — v1
"""Semantic versions for manifests and the bump rules used by merge.

removed phases -> major, added phases -> minor, anything else -> patch.
An explicit override always wins.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple

_SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class BumpKind(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class SemVer(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(version: str) -> SemVer:
    """Parse 'X.Y.Z' (optionally prefixed with 'v')."""
    match = _SEMVER_RE.match(version.strip())
    if not match:
        raise ValueError(f"Invalid version {version!r}; expected MAJOR.MINOR.PATCH")
    return SemVer(*(int(g) for g in match.groups()))


def is_valid_version(version: str) -> bool:
    return _SEMVER_RE.match(version.strip()) is not None


def bump_version(version: str, kind: BumpKind) -> str:
    v = parse_version(version)
    if kind == BumpKind.MAJOR:
        return str(SemVer(v.major + 1, 0, 0))
    if kind == BumpKind.MINOR:
        return str(SemVer(v.major, v.minor + 1, 0))
    return str(SemVer(v.major, v.minor, v.patch + 1))


def classify_bump(added: list[str], removed: list[str]) -> BumpKind:
    """Bump kind implied by a phase diff."""
    if removed:
        return BumpKind.MAJOR
    if added:
        return BumpKind.MINOR
    return BumpKind.PATCH


def version_sort_key(version: str) -> tuple[int, int, int, str]:
    """Sort key that orders semantic versions numerically, others last."""
    try:
        v = parse_version(version)
    except ValueError:
        return (1 << 30, 0, 0, version)
    return (v.major, v.minor, v.patch, "")
