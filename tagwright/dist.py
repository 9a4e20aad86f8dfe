"""Distribution area sync through the svn CLI."""

from __future__ import annotations

import shutil
from pathlib import Path

from .retry import RetryPolicy, classify_failure
from .shell import run


def dist_target(dist_url: str, repo: str, version: str, rc: int) -> str:
    """Directory of a candidate in the distribution area.

    Example:
        ("https://dist.example.org/dev", "foo", "1.2.0", 1)
            → "https://dist.example.org/dev/foo/foo-1.2.0-rc1"
    """
    return f"{dist_url.rstrip('/')}/{repo}/{repo}-{version}-rc{rc}"


def commit_message(repo: str, version: str, rc: int) -> str:
    return f"Add {repo} {version}-rc{rc} artifacts (uploaded by tagwright)"


def _svn(policy: RetryPolicy, operation: str, *args: str, cwd: Path | None = None) -> None:
    def _call() -> None:
        result = run("svn", *args, cwd=str(cwd) if cwd else None)
        if result.returncode != 0:
            raise classify_failure(operation, result.stderr)

    policy.call(operation, _call)


def sync_files(
    files: list[Path],
    target: str,
    message: str,
    workdir: Path,
    policy: RetryPolicy | None = None,
) -> Path:
    """Copy files into the svn directory at target and commit them.

    Checks out target with depth empty into ``workdir/svn``, copies the
    files in, adds everything and commits.

    Returns:
        The checkout directory.
    """
    policy = policy or RetryPolicy()
    checkout = workdir / "svn"
    checkout.mkdir(parents=True, exist_ok=True)
    _svn(policy, "svn checkout", "checkout", "--depth", "empty", target, str(checkout))
    _svn(policy, "svn update", "update", str(checkout))
    for f in files:
        shutil.copy2(f, checkout / f.name)
    _svn(policy, "svn add", "add", "--force", ".", cwd=checkout)
    _svn(policy, "svn commit", "commit", "-m", message, cwd=checkout)
    print(f"  committed {len(files)} files to {target}")
    return checkout
