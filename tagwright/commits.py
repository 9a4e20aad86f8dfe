"""Conventional commit classification.

Turns raw commits into typed Change records. Classification never fails:
a header that does not follow ``<type>(<scope>)?(!)?: <subject>`` becomes
a non-breaking change of type "other" with the whole header as subject.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from packaging.utils import canonicalize_name

from .models import Change, ChangeType, RawCommit

KNOWN_TYPES: frozenset[str] = frozenset(
    {"feat", "fix", "perf", "refactor", "docs", "build", "chore"}
)

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][A-Za-z0-9_-]*)"
    r"(?:\((?P<scope>[^()]*)\))?"
    r"(?P<bang>!)?"
    r": (?P<subject>.+)$"
)
_PR_TRAILER_RE = re.compile(r"\s*\(#(?P<pr>\d+)\)\s*$")
_BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:", re.IGNORECASE)
_AFFECTS_FOOTER_RE = re.compile(r"^affects:\s*(?P<names>.*)$", re.IGNORECASE)


def classify_commit(commit: RawCommit) -> Change:
    """Parse one raw commit into a Change.

    Examples:
        "feat(api)!: drop v1 (#12)" → type "feat", scope "api",
            breaking, subject "drop v1", pr 12
        "Update readme" → type "other", subject "Update readme"
    """
    header, _, body = commit.message.strip().partition("\n")
    header = header.strip()
    body = body.strip("\n")

    change_type: ChangeType = "other"
    scope: str | None = None
    breaking = False
    subject = header

    match = _HEADER_RE.match(header)
    if match:
        raw_type = match.group("type").lower()
        if raw_type in KNOWN_TYPES:
            change_type = raw_type  # type: ignore[assignment]
        scope = (match.group("scope") or "").strip() or None
        breaking = match.group("bang") is not None
        subject = match.group("subject").strip()

    pr: int | None = None
    pr_match = _PR_TRAILER_RE.search(subject)
    if pr_match:
        pr = int(pr_match.group("pr"))
        subject = subject[: pr_match.start()].rstrip()

    affects: set[str] = set()
    for line in body.splitlines():
        line = line.strip()
        if _BREAKING_FOOTER_RE.match(line):
            breaking = True
            continue
        affects_match = _AFFECTS_FOOTER_RE.match(line)
        if affects_match:
            for name in affects_match.group("names").split(","):
                if name.strip():
                    affects.add(canonicalize_name(name.strip()))

    return Change(
        sha=commit.sha,
        subject=subject or header,
        body=body,
        type=change_type,
        scope=scope,
        breaking=breaking,
        paths=commit.files,
        affects=tuple(sorted(affects)),
        pr=pr,
    )


def is_preparation_commit(message: str, prefix: str, tag_prefix: str = "v") -> bool:
    """Whether a commit is one of the tool's own, "<prefix> <tag_prefix>X.Y.Z"."""
    lines = message.strip().splitlines()
    if not lines:
        return False
    pattern = rf"{re.escape(prefix)} {re.escape(tag_prefix)}\d+\.\d+\.\d+"
    return re.fullmatch(pattern, lines[0].strip()) is not None


def classify_commits(
    commits: Iterable[RawCommit],
    skip_prefix: str | None = None,
    tag_prefix: str = "v",
) -> list[Change]:
    """Classify commits, preserving their (oldest-first) order.

    Args:
        commits: Raw commits between the base ref and HEAD.
        skip_prefix: Subject prefix of the tool's own preparation commits.
                     Commits whose subject is exactly this prefix plus a
                     release tag are left out.
        tag_prefix: Prefix of release tags ("v").
    """
    changes: list[Change] = []
    for commit in commits:
        if skip_prefix and is_preparation_commit(commit.message, skip_prefix, tag_prefix):
            continue
        changes.append(classify_commit(commit))
    return changes
