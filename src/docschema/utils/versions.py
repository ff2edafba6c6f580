"""Semantic version helpers.

Thin wrappers over the semver library so the rest of the package
compares version strings with semver precedence (pre-releases sort
before their release) without handling ``semver.Version`` objects.
"""

from collections.abc import Iterable
from typing import TypeVar

import semver

from docschema.errors import IllegalArgumentError

T = TypeVar("T")


def is_valid(version: str) -> bool:
    """Return True if ``version`` is a valid semantic version string."""
    return isinstance(version, str) and semver.Version.is_valid(version)


def parse(version: str) -> semver.Version:
    """Parse a version string, raising IllegalArgumentError if invalid."""
    if not is_valid(version):
        raise IllegalArgumentError(f"Invalid semantic version: {version!r}")
    return semver.Version.parse(version)


def compare(a: str, b: str) -> int:
    """Compare two version strings: -1, 0 or 1."""
    return parse(a).compare(parse(b))


def in_range(version: str, lower_exclusive: str, upper_inclusive: str) -> bool:
    """Return True if ``lower_exclusive < version <= upper_inclusive``."""
    v = parse(version)
    return v > parse(lower_exclusive) and v <= parse(upper_inclusive)


def sort_tagged(items: Iterable[tuple[str, T]]) -> list[tuple[str, T]]:
    """Sort ``(version, value)`` pairs ascending by semver precedence."""
    return sorted(items, key=lambda item: parse(item[0]))
