"""Version ordering helpers.

This is an approximation of semantic versioning, not strict semver. Each
version is split on ``.`` and ``-``; every component is read as its leading
integer (non-numeric components count as 0) and compared left to right, with
the shorter version zero-padded. As a consequence ``1.0.0-rc1`` compares equal
to ``1.0.0``; callers that care filter pre-releases with ``is_prerelease``
first.
"""

import functools
import re

_SPLIT_RE = re.compile(r"[.-]")
_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")
_PRERELEASE_RE = re.compile(r"alpha|beta|rc|dev|pre", re.IGNORECASE)


def _component(part: str) -> int:
    match = _LEADING_INT_RE.match(part)
    return int(match.group()) if match else 0


def parse_version(version: str) -> list[int]:
    """Split a version string into numeric components."""
    return [_component(part) for part in _SPLIT_RE.split(version)]


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings.

    Returns:
        Positive if a > b, negative if a < b, 0 if equal
    """
    parts_a = parse_version(a)
    parts_b = parse_version(b)

    for i in range(max(len(parts_a), len(parts_b))):
        part_a = parts_a[i] if i < len(parts_a) else 0
        part_b = parts_b[i] if i < len(parts_b) else 0
        if part_a != part_b:
            return part_a - part_b

    return 0


version_key = functools.cmp_to_key(compare_versions)


def is_prerelease(version: str) -> bool:
    """Check if a version string indicates a pre-release."""
    return "-" in version or "+" in version or bool(_PRERELEASE_RE.search(version))
