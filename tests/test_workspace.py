"""Tests for tagwright.workspace."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tagwright.config import ReleaseConfig
from tagwright.errors import ConfigurationError, RepositoryStateError
from tagwright.models import Component, RawCommit, RepoContext
from tagwright.tags import parse_tag
from tagwright.workspace import (
    build_snapshot,
    discover_components,
    infer_primary,
    member_dirs,
    preflight,
    resolve_base_ref,
)


def _ctx(root: Path, *tags: str, **config: object) -> RepoContext:
    refs = [parse_tag(t, commit="c" * 40) for t in tags]
    return RepoContext(
        root=root,
        owner="apache",
        repo="foo",
        branch="main",
        head_commit="f" * 40,
        config=ReleaseConfig(**config),  # type: ignore[arg-type]
        tags=tuple(r for r in refs if r),
    )


class TestDiscoverComponents:
    def test_member_dirs(self, workspace: Path) -> None:
        """Root project plus member directories with a manifest."""
        assert member_dirs(workspace) == [".", "packages/core", "packages/ext"]

    def test_components_and_internal_deps(self, workspace: Path) -> None:
        """Components with canonical names and internal deps only."""
        components = {c.name: c for c in discover_components(workspace)}
        assert set(components) == {"foo", "core", "ext-plugin"}
        assert components["foo"].path == "."
        assert components["foo"].deps == ("core",)
        assert components["ext-plugin"].deps == ("core",)
        assert components["core"].dependents == ("ext-plugin", "foo")
        assert components["core"].version == "0.4.0"

    @patch("tagwright.workspace.show_file")
    def test_versions_from_base_ref(self, mock_show: MagicMock, workspace: Path) -> None:
        """Versions come from the base ref when the manifest existed there."""
        def at_base(ref: str, path: str) -> str | None:
            if path == "packages/core/pyproject.toml":
                return '[project]\nname = "core"\nversion = "0.3.0"\n'
            return None

        mock_show.side_effect = at_base
        components = {c.name: c for c in discover_components(workspace, "v1.1.0")}
        assert components["core"].version == "0.3.0"
        # Did not exist at the base ref
        assert components["foo"].version == "1.2.0"

    def test_no_components(self, tmp_path: Path) -> None:
        """A workspace without projects is a configuration error."""
        (tmp_path / "pyproject.toml").write_text("[tool.other]\n")
        with pytest.raises(ConfigurationError, match="No components"):
            discover_components(tmp_path)


class TestInferPrimary:
    def _components(self) -> list[Component]:
        return [
            Component(name="core", path="packages/core", version="1.0.0", dependents=("a", "b")),
            Component(name="a", path="packages/a", version="1.0.0", dependents=("b",)),
            Component(name="b", path="packages/b", version="1.0.0"),
        ]

    def test_configured(self) -> None:
        """Configured primary is canonicalized."""
        assert infer_primary(self._components(), ReleaseConfig(primary="A"), "foo") == "a"

    def test_configured_unknown(self) -> None:
        """A configured primary must exist."""
        with pytest.raises(ConfigurationError, match="not found"):
            infer_primary(self._components(), ReleaseConfig(primary="zzz"), "foo")

    def test_root_project(self) -> None:
        """The root project is the primary."""
        components = self._components() + [Component(name="foo-root", path=".", version="1.0.0")]
        assert infer_primary(components, ReleaseConfig(), "foo") == "foo-root"

    def test_repository_name(self) -> None:
        """The component named like the repository is next."""
        assert infer_primary(self._components(), ReleaseConfig(), "B") == "b"

    def test_most_dependents(self) -> None:
        """Otherwise the most depended-on component wins."""
        assert infer_primary(self._components(), ReleaseConfig(), "foo") == "core"

    def test_tie_is_ambiguous(self) -> None:
        """A tie asks for an explicit primary."""
        components = [
            Component(name="x", path="x", version="1.0.0"),
            Component(name="y", path="y", version="1.0.0"),
        ]
        with pytest.raises(ConfigurationError, match="x, y") as info:
            infer_primary(components, ReleaseConfig(), "foo")
        assert info.value.hint is not None and "primary" in info.value.hint


class TestBaseRef:
    def test_last_stable(self, tmp_path: Path) -> None:
        """Base ref is the newest stable tag."""
        ctx = _ctx(tmp_path, "v1.9.0", "v1.10.0", "v2.0.0-rc.1")
        assert resolve_base_ref(ctx) == "v1.10.0"

    def test_since_wins(self, tmp_path: Path) -> None:
        """--since overrides the tag."""
        assert resolve_base_ref(_ctx(tmp_path, "v1.0.0"), since="abc123") == "abc123"

    def test_no_stable_tag(self, tmp_path: Path) -> None:
        """No stable tag and no --since is an error with a hint."""
        with pytest.raises(RepositoryStateError, match="no stable release tag") as info:
            resolve_base_ref(_ctx(tmp_path, "v1.0.0-rc.1"))
        assert "--since" in (info.value.hint or "")


class TestBuildSnapshot:
    @patch("tagwright.workspace.show_file", return_value=None)
    @patch("tagwright.workspace.commit_log")
    @patch("tagwright.workspace.step")
    def test_assembles_snapshot(
        self,
        mock_step: MagicMock,
        mock_log: MagicMock,
        mock_show: MagicMock,
        workspace: Path,
    ) -> None:
        """Snapshot holds commits, components and the marked primary."""
        mock_log.return_value = [RawCommit(sha="a" * 40, message="feat: x")]
        snapshot = build_snapshot(_ctx(workspace, "v1.1.0"))

        mock_log.assert_called_once_with("v1.1.0", "f" * 40)
        assert snapshot.base_ref == "v1.1.0"
        assert snapshot.primary == "foo"
        assert snapshot.component("foo").primary is True
        assert snapshot.component("core").primary is False
        assert len(snapshot.commits) == 1
        assert snapshot.repository == "apache/foo"


class TestPreflight:
    @patch("tagwright.workspace.list_tags", return_value=[])
    @patch("tagwright.workspace.head_commit", return_value="f" * 40)
    @patch("tagwright.workspace.remote_url", return_value="git@github.com:apache/foo.git")
    @patch("tagwright.workspace.ensure_upstream", return_value="origin/main")
    @patch("tagwright.workspace.current_branch", return_value="main")
    @patch("tagwright.workspace.ensure_clean")
    @patch("tagwright.workspace.repo_root")
    @patch("tagwright.workspace.step")
    def test_collects_context(
        self,
        mock_step: MagicMock,
        mock_root: MagicMock,
        mock_clean: MagicMock,
        mock_branch: MagicMock,
        mock_upstream: MagicMock,
        mock_remote: MagicMock,
        mock_head: MagicMock,
        mock_tags: MagicMock,
        workspace: Path,
    ) -> None:
        """Preflight gathers owner, repo, branch and config."""
        mock_root.return_value = workspace
        ctx = preflight()
        mock_clean.assert_called_once()
        assert (ctx.owner, ctx.repo, ctx.branch) == ("apache", "foo", "main")
        assert ctx.config == ReleaseConfig()

    @patch("tagwright.workspace.ensure_clean")
    @patch("tagwright.workspace.repo_root")
    @patch("tagwright.workspace.step")
    def test_dirty_tree_stops(
        self,
        mock_step: MagicMock,
        mock_root: MagicMock,
        mock_clean: MagicMock,
        workspace: Path,
    ) -> None:
        """A dirty tree stops preflight."""
        mock_root.return_value = workspace
        mock_clean.side_effect = RepositoryStateError("working tree is not clean")
        with pytest.raises(RepositoryStateError):
            preflight()
