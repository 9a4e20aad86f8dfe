"""Data models for tagwright.

These Pydantic models represent the core data structures used throughout
the release pipeline. Records produced by planning are frozen; a
ReleasePlan is never modified once assembled.
"""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import ReleaseConfig

ChangeType = Literal[
    "feat", "fix", "perf", "refactor", "docs", "build", "chore", "other"
]


class RawCommit(BaseModel):
    """A commit as reported by git, before classification.

    Attributes:
        sha: Full commit id.
        message: Complete commit message (header, body and footers).
        files: Paths changed by the commit, relative to the repository root.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    files: tuple[str, ...] = ()


class Change(BaseModel):
    """A classified commit.

    Attributes:
        sha: Full commit id.
        subject: Header description (without type, scope and PR trailer).
        body: Everything after the header line.
        type: Conventional commit type, "other" when unrecognized.
        scope: Optional header scope.
        breaking: True for "!" headers or BREAKING CHANGE footers.
        paths: Files touched by the commit.
        affects: Canonical component names from an "affects:" footer.
        pr: Pull-request number parsed from a "(#123)" subject trailer.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    subject: str
    body: str = ""
    type: ChangeType = "other"
    scope: str | None = None
    breaking: bool = False
    paths: tuple[str, ...] = ()
    affects: tuple[str, ...] = ()
    pr: int | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class Component(BaseModel):
    """Metadata for a single component in the workspace.

    Attributes:
        name: Canonical (PEP 503) component name.
        path: Relative path from workspace root to the component directory.
              The root project uses ".".
        version: Version recorded in the manifest at the base ref.
        primary: True for the component that defines the release version.
        deps: Internal (workspace) dependency names.
        dependents: Internal components depending on this one.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    version: str
    primary: bool = False
    deps: tuple[str, ...] = ()
    dependents: tuple[str, ...] = ()


class BumpKind(IntEnum):
    """Version bump severity; larger values win."""

    PATCH = 1
    MINOR = 2
    MAJOR = 3


class TagRef(BaseModel):
    """A release tag.

    Attributes:
        name: Full tag name (e.g. "v1.2.0-rc.3").
        base: Base version "X.Y.Z".
        kind: "rc" for candidates, "stable" for final releases.
        rc: Candidate number; None for stable tags.
        commit: Commit the tag points to; None for tags not yet created.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    base: str
    kind: Literal["rc", "stable"]
    rc: int | None = None
    commit: str | None = None

    @property
    def version(self) -> str:
        if self.kind == "rc":
            return f"{self.base}-rc.{self.rc}"
        return self.base

    @property
    def rc_suffix(self) -> str:
        return f"-rc{self.rc}" if self.kind == "rc" else ""


class ReleaseState(BaseModel):
    """Tag state of a single base version: untagged, rc(n) or stable."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["untagged", "rc", "stable"]
    rc: int | None = None


class ChangelogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    short_sha: str
    subject: str
    pr: int | None = None


class ChangelogCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    entries: tuple[ChangelogEntry, ...]


class ChangelogSection(BaseModel):
    """Categorized changes of one component for one version.

    Categories appear in fixed order; empty categories are omitted.
    """

    model_config = ConfigDict(frozen=True)

    component: str
    version: str
    categories: tuple[ChangelogCategory, ...] = ()

    def as_dict(self) -> dict[str, list[ChangelogEntry]]:
        """Category title → ordered entries."""
        return {c.title: list(c.entries) for c in self.categories}


class ComponentPlan(BaseModel):
    """Version decision for a component with at least one mapped change."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    old_version: str
    new_version: str
    bump: BumpKind
    changes: tuple[Change, ...]
    changelog: ChangelogSection | None = None


class ManifestUpdate(BaseModel):
    """Manifest rewrite for one component.

    Attributes:
        name: Component name.
        path: Component directory.
        version: Version the manifest must declare after the release.
        constraints: Internal dependency name → version to pin.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    version: str
    constraints: dict[str, str] = Field(default_factory=dict)


class PlanningNoop(BaseModel):
    """Terminal outcome: the primary component has no changes.

    Attributes:
        primary: The primary component name.
        reason: Explanation for the user.
        changed: Non-primary components that did have changes.
    """

    model_config = ConfigDict(frozen=True)

    primary: str
    reason: str
    changed: tuple[str, ...] = ()


class ReleasePlan(BaseModel):
    """Everything a release candidate needs, computed before any write.

    Attributes:
        repository: "owner/name" of the hosting repository.
        base_version: Release version, equal to the primary's new version.
        rc: Candidate number, None for a plan without a candidate tag.
        tag: The candidate tag to create.
        primary: Primary component name.
        base_ref: Ref the commit range starts from (exclusive).
        head_commit: Commit the range ends at (inclusive).
        entries: Components with changes, in dependency order.
        manifest_updates: Manifests to rewrite, including components whose
                          only change is a dependency constraint.
    """

    model_config = ConfigDict(frozen=True)

    repository: str
    base_version: str
    rc: int | None = None
    tag: TagRef | None = None
    primary: str
    base_ref: str
    head_commit: str
    entries: tuple[ComponentPlan, ...]
    manifest_updates: tuple[ManifestUpdate, ...] = ()

    @model_validator(mode="after")
    def _check_consistency(self) -> ReleasePlan:
        primary = self.entry(self.primary)
        if primary is None:
            raise ValueError(f"primary component {self.primary} missing from plan")
        if primary.new_version != self.base_version:
            raise ValueError(
                f"base version {self.base_version} does not match "
                f"{self.primary} {primary.new_version}"
            )
        versions = {e.name: e.new_version for e in self.entries}
        versions |= {u.name: u.version for u in self.manifest_updates}
        for update in self.manifest_updates:
            for dep, pinned in update.constraints.items():
                if versions.get(dep) != pinned:
                    raise ValueError(
                        f"{update.name} pins {dep}=={pinned}, "
                        "which is not a version in this plan"
                    )
        return self

    def entry(self, name: str) -> ComponentPlan | None:
        return next((e for e in self.entries if e.name == name), None)


class WorkspaceSnapshot(BaseModel):
    """Immutable view of the workspace that planning runs against.

    Built once per run from git and the manifests; planning never reads
    anything that is not in here.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    owner: str
    repo: str
    config: ReleaseConfig = Field(default_factory=ReleaseConfig)
    components: tuple[Component, ...]
    primary: str
    base_ref: str
    head_commit: str
    commits: tuple[RawCommit, ...] = ()
    tags: tuple[TagRef, ...] = ()

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def component(self, name: str) -> Component:
        for c in self.components:
            if c.name == name:
                return c
        raise KeyError(name)


class RepoContext(BaseModel):
    """Repository facts gathered by preflight, shared by every operation.

    Attributes:
        root: Repository root directory.
        owner: Hosting owner (organization or user).
        repo: Repository name.
        branch: Checked-out branch.
        head_commit: Commit HEAD points at.
        config: Validated [tool.tagwright] settings.
        tags: Release tags present in the repository.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    owner: str
    repo: str
    branch: str
    head_commit: str
    config: ReleaseConfig = Field(default_factory=ReleaseConfig)
    tags: tuple[TagRef, ...] = ()

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"
