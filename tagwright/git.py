"""Git operations used by the release pipeline.

Thin wrappers over the git CLI that return typed records. Planning never
calls these directly; they feed the WorkspaceSnapshot and apply the plan.
"""

from __future__ import annotations

import re
from pathlib import Path

from .errors import RepositoryStateError
from .models import RawCommit, TagRef
from .retry import RetryPolicy, classify_failure
from .shell import git, run
from .tags import parse_tag

_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x1f"

_REMOTE_PATTERNS = (
    re.compile(r"^git@github\.com:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    re.compile(
        r"^(?:https?|ssh)://(?:[^@/]+@)?github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
    ),
)


def repo_root() -> Path:
    root = git("rev-parse", "--show-toplevel", check=False)
    if not root:
        raise RepositoryStateError(
            "Not a git repository.", hint="run from inside the workspace checkout"
        )
    return Path(root)


def ensure_clean() -> None:
    """Fail unless the working tree has no staged, modified or untracked files."""
    status = git("status", "--porcelain", "--untracked-files=all")
    if status:
        files = "\n".join(f"  {line}" for line in status.splitlines()[:10])
        raise RepositoryStateError(
            f"working tree is not clean:\n{files}",
            hint="commit or stash local changes first",
        )


def current_branch() -> str:
    branch = git("rev-parse", "--abbrev-ref", "HEAD")
    if branch == "HEAD":
        raise RepositoryStateError(
            "HEAD is detached", hint="check out the release branch first"
        )
    return branch


def ensure_upstream(branch: str) -> str:
    """Return the upstream of branch, failing for untracked branches."""
    upstream = git(
        "rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{branch}@{{u}}",
        check=False,
    )
    if not upstream:
        raise RepositoryStateError(
            f"branch {branch} does not track a remote branch",
            hint=f"push it first: git push -u origin {branch}",
        )
    return upstream


def head_commit() -> str:
    return git("rev-parse", "HEAD")


def remote_url(remote: str) -> str:
    url = git("remote", "get-url", remote, check=False)
    if not url:
        raise RepositoryStateError(f"no git remote named {remote}")
    return url


def parse_remote(url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a GitHub SSH or HTTPS remote URL.

    Examples:
        "git@github.com:apache/foo.git" → ("apache", "foo")
        "https://github.com/apache/foo" → ("apache", "foo")
    """
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(url.strip())
        if match:
            return match.group("owner"), match.group("repo")
    raise RepositoryStateError(f"unsupported remote URL (expected GitHub): {url}")


def list_tags(prefix: str = "v") -> list[TagRef]:
    """All release tags, peeled to the commits they point at.

    Tags that do not look like ``<prefix>X.Y.Z`` or ``<prefix>X.Y.Z-rc.N``
    are ignored.
    """
    output = git(
        "for-each-ref",
        "refs/tags",
        f"--format=%(refname:short){_FIELD_SEP}%(objectname){_FIELD_SEP}%(*objectname)",
    )
    tags: list[TagRef] = []
    for line in output.splitlines():
        name, obj, peeled = (line.split(_FIELD_SEP) + ["", ""])[:3]
        ref = parse_tag(name, commit=peeled or obj, prefix=prefix)
        if ref is not None:
            tags.append(ref)
    return tags


def commit_log(base: str, head: str = "HEAD") -> list[RawCommit]:
    """Commits in base..head, oldest first, with their changed files."""
    output = git(
        "log",
        "--reverse",
        "--name-only",
        f"--format={_RECORD_SEP}%H{_FIELD_SEP}%B{_FIELD_SEP}",
        f"{base}..{head}",
    )
    return parse_commit_log(output)


def parse_commit_log(output: str) -> list[RawCommit]:
    commits: list[RawCommit] = []
    for record in output.split(_RECORD_SEP):
        if not record.strip():
            continue
        sha, message, files = (record.split(_FIELD_SEP) + ["", ""])[:3]
        commits.append(
            RawCommit(
                sha=sha.strip(),
                message=message.strip(),
                files=tuple(f.strip() for f in files.splitlines() if f.strip()),
            )
        )
    return commits


def show_file(ref: str, path: str) -> str | None:
    """Content of path at ref, or None if it does not exist there."""
    result = run("git", "show", f"{ref}:{path}")
    if result.returncode != 0:
        return None
    return result.stdout


def create_tag(name: str, commit: str, message: str) -> None:
    """Create an annotated tag. Fails if the tag exists."""
    git("tag", "-a", name, commit, "-m", message)


def commit_paths(paths: list[str], message: str) -> bool:
    """Stage paths and commit them.

    Returns:
        False if nothing was staged (no commit created).
    """
    git("add", "--", *paths)
    staged = git("diff", "--cached", "--name-only", check=False)
    if not staged:
        return False
    git("commit", "-m", message)
    return True


def push(remote: str, *refs: str, policy: RetryPolicy | None = None) -> None:
    """Push refs to remote, retrying transient network failures."""
    policy = policy or RetryPolicy()

    def _push() -> None:
        result = run("git", "push", remote, *refs)
        if result.returncode != 0:
            raise classify_failure("git push", result.stderr)

    policy.call(f"git push {' '.join(refs)}", _push)
