"""
Semantic version strings for document versions.

Versions are ``major.minor.patch`` triples ordered lexicographically.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ..errors import ValidationError


_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

INITIAL_VERSION = "0.0.0"


class BumpLevel(Enum):
    """Which component of a version a batch of changes increments."""
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True, order=True)
class SemanticVersion:
    """A parsed version; field order gives lexicographic comparison."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, version: str) -> SemanticVersion:
        match = _VERSION_RE.match(version.strip()) if version else None
        if not match:
            raise ValidationError(f"Invalid version string: {version!r}", {"version": version})
        return cls(*(int(part) for part in match.groups()))

    def bump(self, level: BumpLevel) -> SemanticVersion:
        if level == BumpLevel.MAJOR:
            return SemanticVersion(self.major + 1, 0, 0)
        if level == BumpLevel.MINOR:
            return SemanticVersion(self.major, self.minor + 1, 0)
        return SemanticVersion(self.major, self.minor, self.patch + 1)

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(version: str) -> SemanticVersion:
    return SemanticVersion.parse(version)


def format_version(major: int, minor: int, patch: int) -> str:
    return str(SemanticVersion(major, minor, patch))


def increment_version(version: str, level) -> str:
    """
    Increment one component of a version string.

    Args:
        version: Current version, e.g. "1.2.3"
        level: BumpLevel or its string value ("major", "minor", "patch")

    Returns:
        The incremented version string; lower components reset to zero
    """
    return str(parse_version(version).bump(BumpLevel(level)))


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as ``a`` is older than, equal to or newer than ``b``."""
    left, right = parse_version(a), parse_version(b)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_version_newer(a: str, b: str) -> bool:
    return compare_versions(a, b) > 0


def version_distance(a: str, b: str) -> Tuple[int, int, int]:
    """Component-wise difference ``b - a``."""
    left, right = parse_version(a), parse_version(b)
    return (right.major - left.major, right.minor - left.minor, right.patch - left.patch)
