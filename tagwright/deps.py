"""Dependency constraint propagation and manifest rewriting.

Provides functions for parsing PEP 508 dependency strings, for deciding
which internal constraints change after a release bumps some components,
and for rewriting pyproject.toml files to pin those constraints.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .graph import ComponentGraph
from .models import ComponentPlan, ManifestUpdate
from .toml import load_pyproject, save_pyproject


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def pin_dep(dep_str: str, version: str) -> str:
    """Pin a PEP 508 dependency to an exact version.

    Preserves any extras and environment markers from the original
    dependency string, but replaces the version specifier with an exact pin.

    Examples:
        pin_dep("requests>=2.0", "2.31.0") → "requests==2.31.0"
        pin_dep("pkg[extra1,extra2]~=1.0", "1.5.0") → "pkg[extra1,extra2]==1.5.0"
    """
    req = Requirement(dep_str)
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}=={version}{marker}"


def propagate_constraints(
    graph: ComponentGraph, plans: Mapping[str, ComponentPlan]
) -> list[ManifestUpdate]:
    """Work out every manifest the release has to rewrite.

    Walks components leaves-first. A component's manifest changes when it
    is bumped itself or when one of its dependencies' manifests changes; in
    the latter case each such constraint is pinned to the dependency's
    version in this release. Constraint-only components keep their version.

    Example:
        A → B → C (C depends on B, B on A), only A changed 1.0.0 → 1.1.0:
        B pins a==1.1.0, C pins b==<B's current version>, neither is bumped.
    """
    versions: dict[str, str] = {}
    updates: list[ManifestUpdate] = []
    for name in graph.order:
        component = graph.components[name]
        constraints = {dep: versions[dep] for dep in component.deps if dep in versions}
        plan = plans.get(name)
        if plan is None and not constraints:
            continue
        version = plan.new_version if plan else component.version
        versions[name] = version
        updates.append(
            ManifestUpdate(
                name=name,
                path=component.path,
                version=version,
                constraints=constraints,
            )
        )
    return updates


def rewrite_pyproject(
    pyproject_path: Path,
    new_version: str,
    internal_dep_versions: Mapping[str, str],
) -> None:
    """Update a component's version and pin its internal dependencies.

    This function:
    1. Updates [project].version to new_version
    2. Pins each dependency named in internal_dep_versions to that version

    Internal deps are pinned in all locations:
    - [project].dependencies
    - [project].optional-dependencies.*
    - [dependency-groups].*

    Uses tomlkit to preserve formatting and comments.

    Args:
        pyproject_path: Path to the pyproject.toml file.
        new_version: New version string to set.
        internal_dep_versions: Map of canonical name → version to pin.
    """
    doc = load_pyproject(pyproject_path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version

    if internal_dep_versions:
        deps = project.get("dependencies")
        if isinstance(deps, list):
            _pin_dep_list(deps, internal_dep_versions)

        opt_deps = project.get("optional-dependencies")
        if isinstance(opt_deps, dict):
            for group in opt_deps.values():
                if isinstance(group, list):
                    _pin_dep_list(group, internal_dep_versions)

        dep_groups = doc.get("dependency-groups")
        if isinstance(dep_groups, dict):
            for group in dep_groups.values():
                if isinstance(group, list):
                    _pin_dep_list(group, internal_dep_versions)

    save_pyproject(pyproject_path, doc)


def _pin_dep_list(deps: list, versions: Mapping[str, str]) -> None:
    """Pin internal dependencies in a list, modifying in place.

    Non-string entries (PEP 735 ``{include-group = ...}`` tables) are kept.
    """
    for i, dep_str in enumerate(deps):
        if not isinstance(dep_str, str):
            continue
        name = dep_canonical_name(str(dep_str))
        if name in versions:
            deps[i] = pin_dep(str(dep_str), versions[name])
