"""Release operations: start → prerelease → sync → vote → release.

Each operation runs preflight first, then either prints what it would do
(dry run) or performs it:

1. start: open a kickoff discussion listing the current components
2. prerelease: plan, commit manifests and changelogs, tag and publish a
   release candidate with its source artifacts
3. sync: copy the newest candidate's artifacts to the distribution area
4. vote: open the vote discussion for the newest candidate
5. release: promote a candidate to a stable tag and publish it

Every write step is safe to re-run: existing tags are never overwritten,
and a re-run on the same commit finishes whatever is missing.
"""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from tempfile import TemporaryDirectory

from pydantic import BaseModel, ConfigDict

from .artifacts import build_artifacts, read_checksums
from .changelog import write_changelog
from .deps import rewrite_pyproject
from .dist import commit_message, dist_target, sync_files
from .errors import RepositoryStateError, TagConflict
from .git import commit_paths, create_tag, head_commit, push
from .github import GitHub
from .models import PlanningNoop, ReleasePlan, RepoContext, TagRef, WorkspaceSnapshot
from .plan import build_release_plan, describe_plan
from .retry import RetryPolicy
from .shell import step
from .tags import ReleaseTagger
from .templates import bullet_lines, plan_changelog, plan_component_lines, render_template
from .workspace import build_snapshot, discover_components, load_components, preflight


class RunOptions(BaseModel):
    """Options shared by every operation.

    Attributes:
        dry_run: Print what would happen; perform no writes.
        since: Explicit base ref instead of the last stable tag.
        artifact_dir: Where artifacts are written or downloaded.
        local_assets: Produce artifacts but skip pushes and uploads.
    """

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    since: str | None = None
    artifact_dir: Path | None = None
    local_assets: bool = False


def _github(ctx: RepoContext | WorkspaceSnapshot) -> GitHub:
    return GitHub(ctx.owner, ctx.repo, RetryPolicy.from_config(ctx.config.retry))


def _asset_dir(root: Path, tag: str, options: RunOptions, kind: str = "") -> Path:
    if options.artifact_dir is not None:
        return options.artifact_dir
    base = root / "target" / "tagwright"
    return (base / kind if kind else base) / tag.replace("/", "_")


def upload_missing(gh: GitHub, tag: str, files: list[Path]) -> list[Path]:
    """Upload the files the release does not have yet."""
    present = set(gh.list_assets(tag))
    missing = [f for f in files if f.name not in present]
    for f in files:
        if f.name in present:
            print(f"  already uploaded {f.name}")
    if missing:
        gh.upload_assets(tag, missing)
    return missing


def run_start(options: RunOptions) -> str:
    """Open the kickoff discussion.

    Returns:
        The discussion URL, or the rendered body on a dry run.
    """
    ctx = preflight()
    components, primary = load_components(ctx)
    last = ReleaseTagger(ctx.tags, ctx.config.tag_prefix).last_stable()
    title = f"{ctx.repo} Release Kickoff"
    body = render_template(
        "start",
        {
            "repository": ctx.repository,
            "primary": primary,
            "base_tag": last.name if last else "(none)",
            "date": date.today().isoformat(),
            "components": bullet_lines(f"{c.name} {c.version}" for c in components),
        },
    )

    step("Opening kickoff discussion")
    if options.dry_run:
        print(f"  dry run: {title}\n---\n{body}")
        return body
    url = _github(ctx).create_discussion(ctx.config.discussion_category, title, body)
    print(f"  {url}")
    return url


def run_prerelease(options: RunOptions) -> ReleasePlan | PlanningNoop:
    """Plan and publish the next release candidate.

    Returns:
        The applied (or, on a dry run, proposed) plan, or PlanningNoop when
        the primary component has no changes.

    Raises:
        TagConflict: If the candidate for HEAD already exists and nothing
                     about it is missing.
    """
    ctx = preflight()
    snapshot = build_snapshot(ctx, options.since)

    step("Planning release")
    try:
        plan = build_release_plan(snapshot)
    except TagConflict as exc:
        if exc.existing.kind != "rc" or exc.existing.commit != snapshot.head_commit:
            raise
        return resume_candidate(ctx, snapshot, exc.existing, options)

    if isinstance(plan, PlanningNoop):
        print(f"  nothing to release: {plan.reason}")
        return plan
    print(describe_plan(plan))
    if options.dry_run:
        return plan
    if plan.tag is None:
        raise RepositoryStateError(f"no candidate tag planned for {plan.base_version}")
    return apply_plan(ctx, snapshot, plan, plan.tag, options)


def write_release_files(
    snapshot: WorkspaceSnapshot, plan: ReleasePlan, on: date
) -> list[str]:
    """Rewrite manifests and prepend changelog sections.

    Returns:
        Paths of every written file, for staging.
    """
    step("Updating manifests and changelogs")
    written: list[str] = []
    for update in plan.manifest_updates:
        manifest = snapshot.root / update.path / "pyproject.toml"
        rewrite_pyproject(manifest, update.version, update.constraints)
        written.append(str(manifest))
        pins = ", ".join(f"{d}=={v}" for d, v in update.constraints.items())
        print(f"  {update.name}: {update.version}" + (f" (pins {pins})" if pins else ""))
    for entry in plan.entries:
        if entry.changelog is None:
            continue
        path = snapshot.root / entry.path / snapshot.config.changelog_file
        write_changelog(path, entry.changelog, on)
        written.append(str(path))
    return written


def rc_body(snapshot: WorkspaceSnapshot, plan: ReleasePlan, tag: TagRef, on: date) -> str:
    return render_template(
        "rc",
        {
            "tag": tag.name,
            "repository": snapshot.repository,
            "version": plan.base_version,
            "date": on.isoformat(),
            "components": plan_component_lines(plan),
            "changelog": plan_changelog(plan, on),
        },
    )


def _rc_title(repo: str, tag: TagRef) -> str:
    return f"{repo} {tag.base}{tag.rc_suffix}"


def _tagged_commit(tag: TagRef) -> str:
    if tag.commit is None:
        raise RepositoryStateError(f"tag {tag.name} does not point at a commit")
    return tag.commit


def apply_plan(
    ctx: RepoContext,
    snapshot: WorkspaceSnapshot,
    plan: ReleasePlan,
    planned: TagRef,
    options: RunOptions,
) -> ReleasePlan:
    """Perform the writes of a candidate plan, in order.

    Manifests and changelogs, one preparation commit, the annotated rc
    tag, pushes, the GitHub prerelease and finally the artifacts.
    """
    config = snapshot.config
    today = date.today()

    written = write_release_files(snapshot, plan, today)

    step("Committing release preparation")
    message = f"{config.release_commit_prefix} {config.tag_prefix}{plan.base_version}"
    if commit_paths(written, message):
        print(f"  {message}")
    else:
        print("  No changes to commit")
    commit = head_commit()

    step(f"Tagging {planned.name}")
    create_tag(planned.name, commit, f"{snapshot.repo} {planned.version}")
    tag = planned.model_copy(update={"commit": commit})
    plan = plan.model_copy(update={"tag": tag})
    print(f"  {tag.name} → {commit[:7]}")

    gh = _github(snapshot)
    policy = gh.policy
    if not options.local_assets:
        push(config.remote, ctx.branch, tag.name, policy=policy)
        step("Creating GitHub prerelease")
        gh.create_release(
            tag.name,
            _rc_title(snapshot.repo, tag),
            rc_body(snapshot, plan, tag, today),
            True,
        )

    step("Packaging artifacts")
    files = build_artifacts(
        plan,
        snapshot.repo,
        config.artifact_prefix,
        commit,
        _asset_dir(snapshot.root, tag.name, options),
    )
    if not options.local_assets:
        upload_missing(gh, tag.name, files)
    return plan


def resume_candidate(
    ctx: RepoContext, snapshot: WorkspaceSnapshot, existing: TagRef, options: RunOptions
) -> ReleasePlan:
    """Finish a candidate whose tag already points at HEAD.

    Re-plans without the existing tag, which reproduces the same plan, then
    creates the release object and uploads assets if either is missing.

    Raises:
        TagConflict: If the release and all its assets already exist.
    """
    print(f"  {existing.name} already points at HEAD; checking what is missing")
    others = tuple(t for t in snapshot.tags if t.name != existing.name)
    replanned = build_release_plan(snapshot.model_copy(update={"tags": others}))
    if isinstance(replanned, PlanningNoop) or replanned.tag is None:
        raise TagConflict(existing)
    if replanned.tag.name != existing.name:
        raise TagConflict(
            existing, hint=f"history now plans {replanned.tag.name}; commit first"
        )
    plan = replanned.model_copy(update={"tag": existing})
    print(describe_plan(plan))
    if options.dry_run:
        return plan

    config = snapshot.config
    step("Packaging artifacts")
    files = build_artifacts(
        plan,
        snapshot.repo,
        config.artifact_prefix,
        _tagged_commit(existing),
        _asset_dir(snapshot.root, existing.name, options),
    )
    if options.local_assets:
        return plan

    gh = _github(snapshot)
    has_release = gh.release_exists(existing.name)
    missing = files
    if has_release:
        present = set(gh.list_assets(existing.name))
        missing = [f for f in files if f.name not in present]
    if has_release and not missing:
        raise TagConflict(
            existing, hint="the candidate is complete; commit changes for the next one"
        )

    if not has_release:
        push(config.remote, ctx.branch, existing.name, policy=gh.policy)
        step("Creating GitHub prerelease")
        gh.create_release(
            existing.name,
            _rc_title(snapshot.repo, existing),
            rc_body(snapshot, plan, existing, date.today()),
            True,
        )
    step("Uploading missing assets")
    upload_missing(gh, existing.name, files)
    return plan


def latest_candidate(ctx: RepoContext, rc: int | None = None) -> TagRef:
    """Newest candidate (highest base version, highest number) not released.

    Raises:
        RepositoryStateError: If there is none.
    """
    candidate = ReleaseTagger(ctx.tags, ctx.config.tag_prefix).latest_rc(rc)
    if candidate is None:
        raise RepositoryStateError(
            "no unreleased release candidate found",
            hint="run `tagwright prerelease` first",
        )
    return candidate


def run_sync(options: RunOptions) -> list[Path]:
    """Copy the newest candidate's assets into the distribution area.

    Returns:
        The synced files (the asset names on a dry run).
    """
    ctx = preflight()
    candidate = latest_candidate(ctx)
    config = ctx.config
    target = dist_target(config.dist_url, ctx.repo, candidate.base, candidate.rc or 1)
    gh = _github(ctx)

    step(f"Syncing {candidate.name} to {target}")
    if options.dry_run:
        names = gh.list_assets(candidate.name)
        for name in names:
            print(f"  - {name}")
        return [Path(n) for n in names]

    workdir = _asset_dir(ctx.root, candidate.name, options, kind="sync")
    files = gh.download_assets(candidate.name, workdir)
    sync_files(
        files,
        target,
        commit_message(ctx.repo, candidate.base, candidate.rc or 1),
        workdir,
        policy=gh.policy,
    )
    return files


def run_vote(options: RunOptions) -> str:
    """Open the vote discussion for the newest candidate.

    Returns:
        The discussion URL, or the rendered body on a dry run.
    """
    ctx = preflight()
    candidate = latest_candidate(ctx)
    config = ctx.config
    gh = _github(ctx)

    step(f"Collecting artifacts of {candidate.name}")
    if options.dry_run:
        # Scratch copy only; a dry run leaves the workspace untouched
        with TemporaryDirectory() as scratch:
            checksums = read_checksums(
                gh.download_assets(candidate.name, Path(scratch), "*.sha512")
            )
    else:
        workdir = _asset_dir(ctx.root, candidate.name, options, kind="vote")
        checksums = read_checksums(gh.download_assets(candidate.name, workdir, "*.sha512"))
    for name in checksums:
        print(f"  {name}")

    title = f"[VOTE] {ctx.repo} {candidate.base}{candidate.rc_suffix}"
    body = render_template(
        "vote",
        {
            "tag": candidate.name,
            "repository": ctx.repository,
            "version": candidate.base,
            "dist_url": dist_target(
                config.dist_url, ctx.repo, candidate.base, candidate.rc or 1
            ),
            "artifacts": bullet_lines(
                f"{name}\n  sha512: `{digest}`" for name, digest in checksums.items()
            ),
            "vote_close_date": (
                date.today() + timedelta(days=config.vote_days)
            ).isoformat(),
        },
    )

    step("Opening vote discussion")
    if options.dry_run:
        print(f"  dry run: {title}\n---\n{body}")
        return body
    url = gh.create_discussion(config.discussion_category, title, body)
    print(f"  {url}")
    return url


def promotion_candidate(ctx: RepoContext, rc: int | None = None) -> TagRef:
    """The candidate to promote, including one whose promotion stopped midway.

    Raises:
        RepositoryStateError: If no candidate matches.
        TagConflict: If the base is already released from a different commit.
    """
    tagger = ReleaseTagger(ctx.tags, ctx.config.tag_prefix)
    candidate = tagger.latest_rc(rc)
    if candidate is not None:
        return candidate
    last = tagger.last_stable()
    if last is not None:
        rcs = [t for t in tagger.rc_tags(last.base) if rc is None or t.rc == rc]
        if rcs:
            same = [t for t in rcs if t.commit == last.commit]
            if same:
                return same[-1]
            raise TagConflict(last, hint=f"{last.base} was released from another commit")
    which = f"rc {rc}" if rc is not None else "release candidate"
    raise RepositoryStateError(
        f"no {which} to promote", hint="run `tagwright prerelease` first"
    )


def run_release(options: RunOptions, rc: int | None = None) -> TagRef:
    """Promote a candidate to a stable release.

    The stable tag points at the candidate's commit. If the stable tag
    already exists on that commit, the release object and assets that are
    missing are created instead.

    Returns:
        The stable tag.
    """
    ctx = preflight()
    config = ctx.config
    candidate = promotion_candidate(ctx, rc)
    tagger = ReleaseTagger(ctx.tags, config.tag_prefix)
    resuming = False
    try:
        stable = tagger.plan_promotion(candidate)
    except TagConflict as exc:
        if exc.existing.commit != candidate.commit:
            raise
        stable = exc.existing
        resuming = True

    components = discover_components(ctx.root, candidate.commit)
    step(f"Promoting {candidate.name} → {stable.name}")
    for c in components:
        print(f"  {c.name} {c.version}")
    if resuming:
        print(f"  {stable.name} already exists on {str(stable.commit)[:7]}; resuming")
    if options.dry_run:
        return stable

    commit = _tagged_commit(candidate)
    gh = _github(ctx)
    if not resuming:
        create_tag(stable.name, commit, f"tagwright release {stable.name}")
    if options.local_assets:
        return stable
    push(config.remote, stable.name, policy=gh.policy)

    body = render_template(
        "release",
        {
            "repository": ctx.repository,
            "version": stable.base,
            "date": date.today().isoformat(),
            "tag": stable.name,
            "components": bullet_lines(f"{c.name} {c.version}" for c in components),
        },
    )
    if not gh.release_exists(stable.name):
        step("Creating GitHub release")
        gh.create_release(stable.name, f"{ctx.repo} {stable.base}", body, False)
    else:
        print("  release object exists")

    step("Copying candidate assets")
    workdir = _asset_dir(ctx.root, stable.name, options, kind="release")
    files = gh.download_assets(candidate.name, workdir)
    upload_missing(gh, stable.name, files)

    # Announce on the first run only
    if not resuming:
        step("Opening announcement discussion")
        url = gh.create_discussion(
            config.discussion_category, f"{ctx.repo} {stable.base} released", body
        )
        print(f"  {url}")
    return stable
