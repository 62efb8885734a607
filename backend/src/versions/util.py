"""Helpers for dot separated version numbers with an optional ``-QUALIFIER`` suffix."""

from __future__ import annotations

import re
from typing import Optional

VERSION_QUALIFIER_PATTERN = re.compile(r"(\d+(?:\.\d+)+)(?=\D|$)")
VALID_VERSION_PATTERN = re.compile(r"^[0-9]{1,4}\.[0-9]{1,4}\.[0-9]{1,4}(-[A-Za-z0-9]+)?$")
THREE_GROUPS_PATTERN = re.compile(r"^(\w+\.\w+\.\w+)")


def retrieve_version_without_qualifier(version: str) -> Optional[str]:
    """``"4.2.0-MGR"`` -> ``"4.2.0"``; ``None`` when no numeric version is found."""
    match = VERSION_QUALIFIER_PATTERN.search(version)
    return match.group(1) if match else None


def retrieve_qualifier_without_version(version: str) -> Optional[str]:
    """``"4.2.0-MGR"`` -> ``"-MGR"``; ``""`` when there is no qualifier."""
    match = VERSION_QUALIFIER_PATTERN.search(version)
    return version[match.end():] if match else None


def is_valid_version(version: Optional[str]) -> bool:
    return version is not None and VALID_VERSION_PATTERN.match(version) is not None


def is_valid_qualifier(qualifier: Optional[str]) -> bool:
    return qualifier is None or (len(qualifier) >= 2 and qualifier.startswith("-"))


def parse_version(version: str) -> tuple[int, ...]:
    numeric = retrieve_version_without_qualifier(version)
    if numeric is None:
        raise ValueError(f"Not a version number: {version!r}")
    return tuple(int(part) for part in numeric.split("."))


def compare_versions(left: str, right: str) -> int:
    """Numeric comparison per segment; missing trailing segments count as zero."""

    a, b = parse_version(left), parse_version(right)
    width = max(len(a), len(b))
    a += (0,) * (width - len(a))
    b += (0,) * (width - len(b))
    return (a > b) - (a < b)


def count_digits_groups(version: str) -> int:
    return len(version.split("."))


def extract_three_groups_of_four_groups_version(version: str) -> str:
    """``"4.2.0.1"`` -> ``"4.2.0"``."""
    match = THREE_GROUPS_PATTERN.match(version)
    return match.group(1) if match else ""
