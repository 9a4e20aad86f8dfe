"""Release planning: classify → map → version → propagate → changelog → tag.

Runs synchronously over one WorkspaceSnapshot and performs no writes, so
the same snapshot always yields the same plan.
"""

from __future__ import annotations

from .changelog import compose_changelogs
from .commits import classify_commits
from .deps import propagate_constraints
from .graph import ComponentGraph
from .models import PlanningNoop, ReleasePlan, WorkspaceSnapshot
from .planner import plan_versions
from .tags import ReleaseTagger


def build_release_plan(snapshot: WorkspaceSnapshot) -> ReleasePlan | PlanningNoop:
    """Compute the release plan for a snapshot.

    Returns:
        The assembled plan, or PlanningNoop when the primary component has
        no changes (no later stage runs).

    Raises:
        ConfigurationError: On a dependency cycle or unknown primary.
        TagConflict: When the base version is already released, or its
                     newest candidate already points at the head commit.
    """
    graph = ComponentGraph(snapshot.components, snapshot.primary)
    changes = classify_commits(
        snapshot.commits,
        skip_prefix=snapshot.config.release_commit_prefix,
        tag_prefix=snapshot.config.tag_prefix,
    )
    mapped = graph.map_changes(changes)

    planned = plan_versions(graph, mapped)
    if isinstance(planned, PlanningNoop):
        return planned

    updates = propagate_constraints(graph, planned)
    planned = compose_changelogs(planned)

    base = planned[snapshot.primary].new_version
    tagger = ReleaseTagger(snapshot.tags, snapshot.config.tag_prefix)
    tag = tagger.plan_candidate(base, snapshot.head_commit)

    return ReleasePlan(
        repository=snapshot.repository,
        base_version=base,
        rc=tag.rc,
        tag=tag,
        primary=snapshot.primary,
        base_ref=snapshot.base_ref,
        head_commit=snapshot.head_commit,
        entries=tuple(planned[name] for name in graph.order if name in planned),
        manifest_updates=tuple(updates),
    )


def describe_plan(plan: ReleasePlan) -> str:
    """Plain-text summary of a plan, used for dry runs."""
    lines = [
        f"release {plan.base_version} ({plan.tag.name if plan.tag else 'untagged'})",
        f"  range: {plan.base_ref}..{plan.head_commit[:7]}",
        f"  primary: {plan.primary}",
    ]
    for entry in plan.entries:
        lines.append(
            f"  {entry.name}: {entry.old_version} → {entry.new_version} "
            f"({entry.bump.name.lower()}, {len(entry.changes)} changes)"
        )
    for update in plan.manifest_updates:
        if plan.entry(update.name) is None:
            lines.append(f"  {update.name}: constraints only")
        for dep, version in update.constraints.items():
            lines.append(f"    {update.name} pins {dep}=={version}")
    return "\n".join(lines)
