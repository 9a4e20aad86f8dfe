"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from tagwright.models import Change, Component, RawCommit, TagRef, WorkspaceSnapshot


def make_commit(sha: str, message: str, *files: str) -> RawCommit:
    return RawCommit(sha=sha * 40 if len(sha) == 1 else sha, message=message, files=files)


def make_change(subject: str = "work", **kwargs: object) -> Change:
    return Change(sha=kwargs.pop("sha", "a" * 40), subject=subject, **kwargs)  # type: ignore[arg-type]


def make_snapshot(
    components: list[Component],
    commits: list[RawCommit],
    primary: str,
    tags: list[TagRef] | None = None,
    head: str = "f" * 40,
) -> WorkspaceSnapshot:
    return WorkspaceSnapshot(
        root=Path("/repo"),
        owner="apache",
        repo="foo",
        components=tuple(components),
        primary=primary,
        base_ref="v0.0.0",
        head_commit=head,
        commits=tuple(commits),
        tags=tuple(tags or ()),
    )


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1", {include-group = "dev"}]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.tagwright]
primary = "my-package"
vote_days = 5
"""
    return tomlkit.parse(content)


@pytest.fixture
def chain_components() -> list[Component]:
    """core ← api ← cli, with core as primary."""
    return [
        Component(name="core", path="packages/core", version="1.0.0"),
        Component(name="api", path="packages/api", version="2.0.0", deps=("core",)),
        Component(name="cli", path="packages/cli", version="3.0.0", deps=("api",)),
    ]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace on disk: root project foo plus packages core and ext."""
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "foo"\nversion = "1.2.0"\n'
        'dependencies = ["core>=1.0", "requests"]\n\n'
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    core = tmp_path / "packages" / "core"
    core.mkdir(parents=True)
    (core / "pyproject.toml").write_text(
        '[project]\nname = "core"\nversion = "0.4.0"\n'
    )
    ext = tmp_path / "packages" / "ext"
    ext.mkdir(parents=True)
    (ext / "pyproject.toml").write_text(
        '[project]\nname = "Ext_Plugin"\nversion = "0.1.0"\n'
        'dependencies = ["core[fast]>=0.3"]\n'
    )
    # Not a component: no manifest
    (tmp_path / "packages" / "docs").mkdir()
    return tmp_path
