"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0")
and release-candidate markers ("1.2.0-rc.3").
"""

from __future__ import annotations

import semver

from .models import BumpKind


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"
    - "1.2.3-rc.1" → "1.2.3-rc.1"

    Build metadata is dropped.
    """
    core, _, prerelease = version_str.strip().partition("-")
    core = core.split("+", 1)[0]
    prerelease = prerelease.split("+", 1)[0]
    parts = core.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    text = ".".join(parts[:3])
    if prerelease:
        text = f"{text}-{prerelease}"
    return semver.Version.parse(text)


def base_version(version_str: str) -> str:
    """Strip any prerelease marker: "1.2.0-rc.2" → "1.2.0"."""
    return str(parse_version(version_str).finalize_version())


def rc_version(base: str, rc: int) -> str:
    """Attach a candidate marker: ("1.2.0", 3) → "1.2.0-rc.3"."""
    return str(parse_version(base).finalize_version().replace(prerelease=f"rc.{rc}"))


def bump(version_str: str, kind: BumpKind) -> str:
    """Apply a bump to the base of a version and return it as a string.

    Examples:
        ("1.2.3", MAJOR) → "2.0.0"
        ("0.9.0", MINOR) → "0.10.0"
        ("1.0", PATCH) → "1.0.1"
    """
    v = parse_version(version_str).finalize_version()
    if kind is BumpKind.MAJOR:
        v = v.bump_major()
    elif kind is BumpKind.MINOR:
        v = v.bump_minor()
    else:
        v = v.bump_patch()
    return str(v)

