"""Workspace discovery and snapshot assembly.

Discovers components from the uv workspace definition, infers the primary
component and freezes everything planning needs into a WorkspaceSnapshot.
"""

from __future__ import annotations

import glob
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from packaging.utils import canonicalize_name

from .config import ReleaseConfig
from .deps import dep_canonical_name
from .errors import ConfigurationError, RepositoryStateError
from .git import (
    commit_log,
    current_branch,
    ensure_clean,
    ensure_upstream,
    head_commit,
    list_tags,
    parse_remote,
    remote_url,
    repo_root,
    show_file,
)
from .graph import link_dependents
from .models import Component, RepoContext, WorkspaceSnapshot
from .shell import step
from .tags import ReleaseTagger
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_release_config,
    get_workspace_member_globs,
    has_project_table,
    load_pyproject,
    parse_pyproject,
)


def member_dirs(root: Path) -> list[str]:
    """Relative directories of all components, the root project as ".".

    Reads [tool.uv.workspace].members from the root pyproject.toml and
    keeps every matching directory that has its own pyproject.toml.
    """
    root_doc = load_pyproject(root / "pyproject.toml")
    dirs: list[str] = []
    if has_project_table(root_doc):
        dirs.append(".")
    for pattern in get_workspace_member_globs(root_doc):
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists():
                rel = p.relative_to(root).as_posix()
                if rel not in dirs:
                    dirs.append(rel)
    return dirs


def _manifest_path(rel: str) -> str:
    return "pyproject.toml" if rel == "." else f"{rel}/pyproject.toml"


def discover_components(
    root: Path, base_ref: str | None = None, pool: ThreadPoolExecutor | None = None
) -> list[Component]:
    """Scan the workspace and build Component records.

    Names and internal dependency edges come from the working tree.
    Versions come from the manifests at base_ref when given, so that a
    preparation commit made after the base ref does not change what the
    next plan sees. Components that did not exist at base_ref use their
    working-tree version.

    Raises:
        ConfigurationError: If no component is found.
    """
    dirs = member_dirs(root)
    if not dirs:
        raise ConfigurationError(
            "No components found",
            hint="add a [project] table or [tool.uv.workspace] members "
            "to the root pyproject.toml",
        )

    base_texts: list[str | None] = [None] * len(dirs)
    if base_ref is not None:
        paths = [_manifest_path(d) for d in dirs]
        if pool is not None:
            base_texts = list(pool.map(lambda p: show_file(base_ref, p), paths))
        else:
            base_texts = [show_file(base_ref, p) for p in paths]

    # First pass: names and versions
    components: dict[str, Component] = {}
    raw_deps: dict[str, list[str]] = {}
    for rel, base_text in zip(dirs, base_texts):
        manifest = root / _manifest_path(rel)
        doc = load_pyproject(manifest)
        fallback = root.name if rel == "." else Path(rel).name
        name = get_project_name(doc, fallback)
        version = get_project_version(doc)
        if base_text is not None:
            base_doc = parse_pyproject(base_text, f"{base_ref}:{_manifest_path(rel)}")
            version = get_project_version(base_doc)
        if name in components:
            raise ConfigurationError(
                f"component name {name} is used by both "
                f"{components[name].path} and {rel}"
            )
        components[name] = Component(name=name, path=rel, version=version)
        raw_deps[name] = get_all_dependency_strings(doc)

    # Second pass: keep only internal deps
    for name, deps in raw_deps.items():
        internal: list[str] = []
        for dep_str in deps:
            dep_name = dep_canonical_name(dep_str)
            if dep_name in components and dep_name != name and dep_name not in internal:
                internal.append(dep_name)
        components[name] = components[name].model_copy(
            update={"deps": tuple(internal)}
        )

    return link_dependents(components.values())


def infer_primary(
    components: list[Component], config: ReleaseConfig, repo: str
) -> str:
    """Choose the component whose version names the release.

    In order: the configured primary, the root project, the component named
    like the repository, the component with the most internal dependents.

    Raises:
        ConfigurationError: For an unknown configured primary, or a tie for
                            most dependents.
    """
    names = {c.name for c in components}
    if config.primary:
        primary = canonicalize_name(config.primary)
        if primary not in names:
            raise ConfigurationError(
                f"configured primary component not found: {config.primary}",
                hint=f"choose one of: {', '.join(sorted(names))}",
            )
        return primary

    for c in components:
        if c.path == ".":
            return c.name

    repo_name = canonicalize_name(repo)
    if repo_name in names:
        return repo_name

    most = max(len(c.dependents) for c in components)
    leaders = sorted(c.name for c in components if len(c.dependents) == most)
    if len(leaders) > 1:
        raise ConfigurationError(
            f"cannot infer the primary component: {', '.join(leaders)} tie",
            hint="set primary in [tool.tagwright]",
        )
    return leaders[0]


def preflight() -> RepoContext:
    """Check the repository is releasable and collect its basic facts.

    Raises:
        RepositoryStateError: Dirty tree, detached HEAD, branch without
                              upstream or unsupported remote.
        ConfigurationError: Invalid [tool.tagwright] table.
    """
    step("Checking repository state")
    root = repo_root()
    config = get_release_config(load_pyproject(root / "pyproject.toml"))
    ensure_clean()
    branch = current_branch()
    upstream = ensure_upstream(branch)
    owner, repo = parse_remote(remote_url(config.remote))
    head = head_commit()
    tags = list_tags(config.tag_prefix)
    print(f"  {owner}/{repo} on {branch} (tracking {upstream}) at {head[:7]}")
    print(f"  {len(tags)} release tags")
    return RepoContext(
        root=root,
        owner=owner,
        repo=repo,
        branch=branch,
        head_commit=head,
        config=config,
        tags=tuple(tags),
    )


def resolve_base_ref(ctx: RepoContext, since: str | None = None) -> str:
    """The explicit ``since`` ref, else the last stable tag by semver.

    Raises:
        RepositoryStateError: If there is no stable tag and no ``since``.
    """
    if since is not None:
        return since
    last = ReleaseTagger(ctx.tags, ctx.config.tag_prefix).last_stable()
    if last is None:
        raise RepositoryStateError(
            "no stable release tag found",
            hint="pass --since <ref> for the first release",
        )
    return last.name


def load_components(ctx: RepoContext) -> tuple[list[Component], str]:
    """Discover components in the working tree and mark the primary one.

    Returns:
        (components, primary name)
    """
    step("Discovering workspace components")
    return _mark_primary(discover_components(ctx.root), ctx)


def _mark_primary(components: list[Component], ctx: RepoContext) -> tuple[list[Component], str]:
    primary = infer_primary(components, ctx.config, ctx.repo)
    components = [c.model_copy(update={"primary": c.name == primary}) for c in components]
    for c in components:
        marker = " (primary)" if c.primary else ""
        deps = f" → [{', '.join(c.deps)}]" if c.deps else ""
        print(f"  {c.name} {c.version} ({c.path}){deps}{marker}")
    return components, primary


def build_snapshot(ctx: RepoContext, since: str | None = None) -> WorkspaceSnapshot:
    """Capture everything planning needs.

    The commit log and the base-ref manifests are read concurrently; both
    complete before the snapshot is returned.

    Raises:
        RepositoryStateError: If there is no stable tag and no ``since``.
        ConfigurationError: Bad components or primary.
    """
    base_ref = resolve_base_ref(ctx, since)
    step(f"Reading history since {base_ref}")
    with ThreadPoolExecutor(max_workers=4) as pool:
        log = pool.submit(commit_log, base_ref, ctx.head_commit)
        components = discover_components(ctx.root, base_ref, pool=pool)
        commits = log.result()
    components, primary = _mark_primary(components, ctx)
    print(f"  {len(commits)} commits since {base_ref}")

    return WorkspaceSnapshot(
        root=ctx.root,
        owner=ctx.owner,
        repo=ctx.repo,
        config=ctx.config,
        components=tuple(components),
        primary=primary,
        base_ref=base_ref,
        head_commit=ctx.head_commit,
        commits=tuple(commits),
        tags=ctx.tags,
    )
