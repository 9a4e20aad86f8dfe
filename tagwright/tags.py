"""Release-candidate / stable tag state machine.

Per base version the states are Untagged, RC(n) and Stable:

    Untagged ──► RC(1) ──► RC(2) ──► … ──► RC(n)
                   │         │               │
                   └─────────┴──► Stable ◄───┘

Stable is terminal for a base version. The tagger is pure: it works on a
list of tag records and never touches git. Creating a tag that already
exists is a TagConflict; tags are never overwritten.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .errors import RepositoryStateError, TagConflict
from .models import ReleaseState, TagRef
from .versions import parse_version, rc_version


def parse_tag(name: str, commit: str | None = None, prefix: str = "v") -> TagRef | None:
    """Parse a tag name into a TagRef.

    Examples:
        "v1.2.0" → stable 1.2.0
        "v1.2.0-rc.3" → rc 3 of 1.2.0
        "nightly" → None
    """
    match = re.fullmatch(
        re.escape(prefix) + r"(\d+\.\d+\.\d+)(?:-rc\.(\d+))?", name.strip()
    )
    if match is None:
        return None
    base, rc = match.group(1), match.group(2)
    if rc is None:
        return TagRef(name=name, base=base, kind="stable", commit=commit)
    return TagRef(name=name, base=base, kind="rc", rc=int(rc), commit=commit)


class ReleaseTagger:
    """Tag decisions over a snapshot of existing tags."""

    def __init__(self, tags: Iterable[TagRef], prefix: str = "v") -> None:
        self.tags = list(tags)
        self.prefix = prefix

    def rc_name(self, base: str, rc: int) -> str:
        return f"{self.prefix}{rc_version(base, rc)}"

    def stable_name(self, base: str) -> str:
        return f"{self.prefix}{base}"

    def find(self, name: str) -> TagRef | None:
        return next((t for t in self.tags if t.name == name), None)

    def rc_tags(self, base: str) -> list[TagRef]:
        """Candidate tags for a base version, lowest number first."""
        return sorted(
            (t for t in self.tags if t.kind == "rc" and t.base == base),
            key=lambda t: t.rc or 0,
        )

    def stable_tag(self, base: str) -> TagRef | None:
        return next(
            (t for t in self.tags if t.kind == "stable" and t.base == base), None
        )

    def state(self, base: str) -> ReleaseState:
        if self.stable_tag(base) is not None:
            return ReleaseState(kind="stable")
        rcs = self.rc_tags(base)
        if rcs:
            return ReleaseState(kind="rc", rc=rcs[-1].rc)
        return ReleaseState(kind="untagged")

    def next_rc(self, base: str) -> int:
        """One more than the highest candidate number for base, else 1."""
        return max((t.rc or 0 for t in self.rc_tags(base)), default=0) + 1

    def last_stable(self) -> TagRef | None:
        """Highest stable tag by semantic version."""
        stable = [t for t in self.tags if t.kind == "stable"]
        if not stable:
            return None
        return max(stable, key=lambda t: parse_version(t.base))

    def latest_rc(self, rc: int | None = None) -> TagRef | None:
        """Newest candidate of the highest base version not yet released.

        Args:
            rc: Pick this candidate number instead of the newest.
        """
        pending = sorted(
            {t.base for t in self.tags if t.kind == "rc"} - {
                t.base for t in self.tags if t.kind == "stable"
            },
            key=parse_version,
        )
        if not pending:
            return None
        rcs = self.rc_tags(pending[-1])
        if rc is None:
            return rcs[-1]
        return next((t for t in rcs if t.rc == rc), None)

    def ensure_absent(self, name: str) -> None:
        existing = self.find(name)
        if existing is not None:
            raise TagConflict(existing)

    def plan_candidate(self, base: str, head: str) -> TagRef:
        """Next candidate tag for base at commit head.

        Raises:
            TagConflict: If base is already released, or if the newest
                candidate already points at head (no new commits).
        """
        stable = self.stable_tag(base)
        if stable is not None:
            raise TagConflict(
                stable,
                hint=f"{base} is already released; new changes need a new version",
            )
        rcs = self.rc_tags(base)
        if rcs and rcs[-1].commit == head:
            raise TagConflict(
                rcs[-1], hint="no new commits since the last candidate"
            )
        rc = self.next_rc(base)
        name = self.rc_name(base, rc)
        self.ensure_absent(name)
        return TagRef(name=name, base=base, kind="rc", rc=rc)

    def plan_promotion(self, candidate: TagRef, target: str | None = None) -> TagRef:
        """Stable tag for a candidate.

        Args:
            candidate: The rc tag being promoted.
            target: Commit the stable tag should point at; defaults to the
                    candidate's commit and must equal it when given.

        Raises:
            TagConflict: If the stable tag already exists.
            RepositoryStateError: If target is not the candidate's commit.
        """
        if candidate.kind != "rc":
            raise RepositoryStateError(f"{candidate.name} is not a release candidate")
        if target is not None and target != candidate.commit:
            raise RepositoryStateError(
                f"cannot promote {candidate.name}: it points at "
                f"{candidate.commit}, not {target}"
            )
        stable = self.stable_tag(candidate.base)
        if stable is not None:
            raise TagConflict(stable)
        return TagRef(
            name=self.stable_name(candidate.base),
            base=candidate.base,
            kind="stable",
            commit=candidate.commit,
        )
