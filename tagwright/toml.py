"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly files.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from .config import ReleaseConfig, parse_config
from .errors import ConfigurationError


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return parse_pyproject(path.read_text(), str(path))


def parse_pyproject(text: str, source: str = "pyproject.toml") -> tomlkit.TOMLDocument:
    """Parse pyproject.toml content, e.g. read from a git ref."""
    try:
        return tomlkit.parse(text)
    except ParseError as exc:
        raise ConfigurationError(f"cannot parse {source}: {exc}") from exc


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def has_project_table(doc: tomlkit.TOMLDocument) -> bool:
    return "project" in doc


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect all dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups)

    Returns raw PEP 508 strings like "requests>=2.0" or "pkg[extra]~=1.0".
    """
    project = doc.get("project", {})
    deps: list = list(project.get("dependencies", []))
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(group_deps)
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(group_deps)
    # Drop {include-group = "..."} tables
    return [str(d) for d in deps if isinstance(d, str)]


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace components. A single-project repository has none.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members or []]


def get_release_config(doc: tomlkit.TOMLDocument) -> ReleaseConfig:
    """Read and validate [tool.tagwright] from the root pyproject.toml."""
    table = doc.get("tool", {}).get("tagwright")
    return parse_config(table.unwrap() if table is not None else None)
