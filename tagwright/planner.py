"""Per-component version decisions.

Each component with at least one mapped change gets the most severe bump
any of its changes triggers. While a component is pre-1.0 a breaking
change only bumps the minor version and features only bump the patch.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .graph import ComponentGraph
from .models import BumpKind, Change, ComponentPlan, PlanningNoop
from .versions import bump, parse_version


def decide_bump(current: str, changes: Sequence[Change]) -> BumpKind:
    """Pick the bump for a component at ``current`` given its changes.

    Examples:
        ("2.3.0", [fix, refactor!]) → MAJOR
        ("1.4.2", [feat, fix]) → MINOR
        ("0.9.0", [feat!]) → MINOR
        ("0.9.0", [feat]) → PATCH
    """
    breaking = any(c.breaking for c in changes)
    if parse_version(current).major >= 1:
        if breaking:
            return BumpKind.MAJOR
        if any(c.type == "feat" for c in changes):
            return BumpKind.MINOR
        return BumpKind.PATCH
    if breaking:
        return BumpKind.MINOR
    return BumpKind.PATCH


def plan_versions(
    graph: ComponentGraph, mapped: Mapping[str, Sequence[Change]]
) -> dict[str, ComponentPlan] | PlanningNoop:
    """Compute new versions for every component with changes.

    Args:
        graph: Workspace graph; supplies current versions, order and primary.
        mapped: Component name → changes affecting it (commit order).

    Returns:
        Component name → plan in dependency order, or PlanningNoop when the
        primary component has no changes. Nothing is planned in that case.
    """
    if not mapped.get(graph.primary):
        return PlanningNoop(
            primary=graph.primary,
            reason=f"primary component {graph.primary} has no changes since "
            "the base ref",
            changed=tuple(sorted(n for n, c in mapped.items() if c)),
        )

    plans: dict[str, ComponentPlan] = {}
    for name in graph.order:
        changes = mapped.get(name)
        if not changes:
            continue
        component = graph.components[name]
        kind = decide_bump(component.version, changes)
        plans[name] = ComponentPlan(
            name=name,
            path=component.path,
            old_version=component.version,
            new_version=bump(component.version, kind),
            bump=kind,
            changes=tuple(changes),
        )
    return plans
