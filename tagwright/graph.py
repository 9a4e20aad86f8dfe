"""Component dependency graph and change ownership.

Provides topological sorting for determining release order in a workspace,
and maps each Change to the components it affects. Components must be
processed in dependency order so that when component A depends on
component B, B's new version is known before A's constraints are rewritten.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import ConfigurationError
from .models import Change, Component


def topo_sort(components: Mapping[str, Component]) -> list[str]:
    """Topologically sort components by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Components with no dependencies are sorted
    alphabetically for deterministic output.

    Args:
        components: Map of component name → Component with deps.

    Returns:
        List of component names, dependencies first.

    Raises:
        ConfigurationError: If a dependency cycle is detected.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A, B, C}) → [C, B, A]
    """
    # Count incoming edges (dependencies) for each component
    in_degree = {n: 0 for n in components}
    # Track reverse dependencies (who depends on each component)
    reverse_deps: dict[str, list[str]] = {n: [] for n in components}

    for name, info in components.items():
        for dep in info.deps:
            # Dependencies outside the set being sorted are ignored
            if dep in components:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []

    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in sorted(reverse_deps[node]):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    # If we didn't process all components, there must be a cycle
    if len(order) != len(components):
        remaining = sorted(set(components) - set(order))
        raise ConfigurationError(
            f"Dependency cycle detected involving: {', '.join(remaining)}",
            hint="internal dependencies must form a DAG; break the cycle "
            "before releasing",
        )

    return order


def link_dependents(components: Iterable[Component]) -> list[Component]:
    """Return copies of the components with ``dependents`` filled in."""
    components = list(components)
    reverse: dict[str, list[str]] = {c.name: [] for c in components}
    for c in components:
        for dep in c.deps:
            if dep in reverse:
                reverse[dep].append(c.name)
    return [
        c.model_copy(update={"dependents": tuple(sorted(reverse[c.name]))})
        for c in components
    ]


class ComponentGraph:
    """Workspace components plus the two ownership strategies.

    Path ownership gives each changed file to the component with the
    longest matching directory prefix; files outside every component belong
    to the primary component. Footer ownership adds every component named
    in an ``affects:`` footer. A change affects the union of both.

    Construction validates the dependency edges, so a cycle is reported
    before any planning happens.
    """

    def __init__(self, components: Iterable[Component], primary: str) -> None:
        self.components: dict[str, Component] = {c.name: c for c in components}
        if primary not in self.components:
            raise ConfigurationError(
                f"primary component not found in workspace: {primary}"
            )
        self.primary = primary
        self.order = topo_sort(self.components)
        # Deeper paths first so the longest prefix wins
        self._roots = sorted(
            ((_prefix(c.path), c.name) for c in self.components.values()),
            key=lambda item: (-len(item[0]), item[1]),
        )

    def owner_of(self, path: str) -> str:
        """Component owning a repository-relative file path."""
        if path.startswith("./"):
            path = path[2:]
        for prefix, name in self._roots:
            if path.startswith(prefix):
                return name
        return self.primary

    def owners_by_path(self, change: Change) -> set[str]:
        return {self.owner_of(p) for p in change.paths}

    def owners_by_footer(self, change: Change) -> set[str]:
        # Names that are not workspace components are ignored
        return {name for name in change.affects if name in self.components}

    def components_for(self, change: Change) -> set[str]:
        return self.owners_by_path(change) | self.owners_by_footer(change)

    def map_changes(self, changes: Iterable[Change]) -> dict[str, list[Change]]:
        """Group changes by affected component, keeping commit order.

        Components without changes do not appear in the result.
        """
        mapped: dict[str, list[Change]] = {}
        for change in changes:
            for name in sorted(self.components_for(change)):
                mapped.setdefault(name, []).append(change)
        return mapped


def _prefix(path: str) -> str:
    """Directory prefix used for ownership; the root project owns ""."""
    path = path.strip("/")
    if path in ("", "."):
        return ""
    return path + "/"
