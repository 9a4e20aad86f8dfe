"""Tests for tagwright.artifacts and tagwright.dist."""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import MagicMock, patch

from conftest import make_change

from tagwright.artifacts import (
    archive_component,
    artifact_stem,
    build_artifacts,
    read_checksums,
    write_checksum,
)
from tagwright.dist import commit_message, dist_target, sync_files
from tagwright.models import BumpKind, ComponentPlan, ReleasePlan
from tagwright.retry import RetryPolicy
from tagwright.tags import parse_tag


def _fake_archive(*args: str, **_: object) -> str:
    # git archive ... -o <dest> <tree>
    dest = Path(args[args.index("-o") + 1])
    dest.write_bytes(b"archive:" + args[-1].encode())
    return ""


class TestArtifactStem:
    def test_primary(self) -> None:
        """Primary component archives carry only the repository name."""
        assert artifact_stem("apache", "foo", "foo", "foo", "1.2.0", 1) == "apache-foo-1.2.0-rc1-src"

    def test_other_component(self) -> None:
        """Other components add their own name after the repository."""
        stem = artifact_stem("apache", "foo", "foo-core", "foo", "0.4.0", 2)
        assert stem == "apache-foo-foo-core-0.4.0-rc2-src"


class TestChecksums:
    def test_write_checksum(self, tmp_path: Path) -> None:
        """Checksum file holds the hex digest and a newline."""
        f = tmp_path / "a.tar.gz"
        f.write_bytes(b"hello")
        checksum = write_checksum(f)
        assert checksum.name == "a.tar.gz.sha512"
        assert checksum.read_text() == hashlib.sha512(b"hello").hexdigest() + "\n"

    def test_read_checksums(self, tmp_path: Path) -> None:
        """Digests are keyed by the archive they describe."""
        (tmp_path / "a.zip.sha512").write_text("abc  a.zip\n")
        (tmp_path / "a.zip").write_bytes(b"")
        files = sorted(tmp_path.iterdir())
        assert read_checksums(files) == {"a.zip": "abc"}


class TestArchive:
    @patch("tagwright.artifacts.git", side_effect=_fake_archive)
    def test_archive_subdirectory(self, mock_git: MagicMock, tmp_path: Path) -> None:
        """A member directory is archived from commit:path in both formats."""
        files = archive_component("abc", "packages/core", "stem", tmp_path / "out")
        assert [f.name for f in files] == [
            "stem.tar.gz",
            "stem.zip",
            "stem.tar.gz.sha512",
            "stem.zip.sha512",
        ]
        first = mock_git.call_args_list[0].args
        assert "--format=tar.gz" in first
        assert "--prefix=stem/" in first
        assert first[-1] == "abc:packages/core"

    @patch("tagwright.artifacts.git", side_effect=_fake_archive)
    def test_archive_root(self, mock_git: MagicMock, tmp_path: Path) -> None:
        """The root project archives the whole commit."""
        archive_component("abc", ".", "stem", tmp_path)
        assert mock_git.call_args.args[-1] == "abc"

    @patch("tagwright.artifacts.git", side_effect=_fake_archive)
    def test_build_artifacts_for_every_entry(self, mock_git: MagicMock, tmp_path: Path) -> None:
        """Every plan entry gets archives and checksums."""
        def entry(name: str, path: str, version: str) -> ComponentPlan:
            return ComponentPlan(
                name=name, path=path, old_version="0.0.1", new_version=version,
                bump=BumpKind.PATCH, changes=(make_change(),),
            )

        plan = ReleasePlan(
            repository="apache/foo",
            base_version="1.2.0",
            rc=3,
            tag=parse_tag("v1.2.0-rc.3"),
            primary="foo",
            base_ref="v1.1.0",
            head_commit="f" * 40,
            entries=(entry("foo", ".", "1.2.0"), entry("core", "packages/core", "0.4.1")),
        )
        files = build_artifacts(plan, "foo", "apache", "abc", tmp_path)
        names = {f.name for f in files}
        assert "apache-foo-1.2.0-rc3-src.tar.gz" in names
        assert "apache-foo-core-0.4.1-rc3-src.zip.sha512" in names
        assert len(files) == 8


class TestDist:
    def test_target(self) -> None:
        """Distribution path is keyed by repository, version and rc."""
        assert (
            dist_target("https://dist.example.org/dev/", "foo", "1.2.0", 1)
            == "https://dist.example.org/dev/foo/foo-1.2.0-rc1"
        )

    def test_commit_message(self) -> None:
        """Distribution commits use the fixed message."""
        assert commit_message("foo", "1.2.0", 2) == (
            "Add foo 1.2.0-rc2 artifacts (uploaded by tagwright)"
        )

    @patch("tagwright.dist.run")
    def test_sync_files(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """Files are copied into the checkout, added and committed."""
        mock_run.return_value = MagicMock(returncode=0, stderr="")
        asset = tmp_path / "a.tar.gz"
        asset.write_bytes(b"x")

        checkout = sync_files(
            [asset], "https://dist/foo/foo-1.2.0-rc1", "msg", tmp_path,
            policy=RetryPolicy(sleep=MagicMock()),
        )

        assert (checkout / "a.tar.gz").read_bytes() == b"x"
        commands = [c.args[1] for c in mock_run.call_args_list]
        assert commands == ["checkout", "update", "add", "commit"]
        assert mock_run.call_args.args == ("svn", "commit", "-m", "msg")
