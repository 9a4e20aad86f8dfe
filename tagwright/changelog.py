"""Changelog synthesis.

Groups a component's classified changes into fixed categories and renders
them as a Markdown section at the top of the component's changelog file.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from pathlib import Path

from .models import (
    Change,
    ChangelogCategory,
    ChangelogEntry,
    ChangelogSection,
    ComponentPlan,
)

BREAKING = "Breaking Changes"
FEATURES = "Features"
FIXES = "Fixes"
REFACTOR_PERF = "Refactor/Perf"
OTHER = "Docs/Build/Chore/Other"

CATEGORY_ORDER: tuple[str, ...] = (BREAKING, FEATURES, FIXES, REFACTOR_PERF, OTHER)


def category_for(change: Change) -> str:
    """Changelog category of a change; breaking changes are always first."""
    if change.breaking:
        return BREAKING
    if change.type == "feat":
        return FEATURES
    if change.type == "fix":
        return FIXES
    if change.type in ("refactor", "perf"):
        return REFACTOR_PERF
    return OTHER


def compose_section(
    component: str, version: str, changes: Sequence[Change]
) -> ChangelogSection:
    """Group changes into categories.

    Category order is fixed, commit order is kept within each category and
    empty categories are left out.
    """
    grouped: dict[str, list[ChangelogEntry]] = {title: [] for title in CATEGORY_ORDER}
    for change in changes:
        grouped[category_for(change)].append(
            ChangelogEntry(
                short_sha=change.short_sha, subject=change.subject, pr=change.pr
            )
        )
    return ChangelogSection(
        component=component,
        version=version,
        categories=tuple(
            ChangelogCategory(title=title, entries=tuple(entries))
            for title, entries in grouped.items()
            if entries
        ),
    )


def compose_changelogs(plans: dict[str, ComponentPlan]) -> dict[str, ComponentPlan]:
    """Attach a changelog section to every planned component."""
    return {
        name: plan.model_copy(
            update={
                "changelog": compose_section(name, plan.new_version, plan.changes)
            }
        )
        for name, plan in plans.items()
    }


def section_heading(component: str, version: str) -> str:
    return f"## {component} v{version}"


def render_section(section: ChangelogSection, on: date) -> str:
    """Render a section as Markdown.

    Example:
        ## core v1.3.0 - 2024-05-01

        ### Features
        - add retries (abc1234) (#42)
    """
    lines = [f"{section_heading(section.component, section.version)} - {on}", ""]
    for category in section.categories:
        lines.append(f"### {category.title}")
        for entry in category.entries:
            pr = f" (#{entry.pr})" if entry.pr is not None else ""
            lines.append(f"- {entry.subject} ({entry.short_sha}){pr}")
        lines.append("")
    return "\n".join(lines) + "\n"


def write_changelog(path: Path, section: ChangelogSection, on: date) -> None:
    """Prepend a rendered section to a changelog file.

    When the file already starts with a section for the same component
    version (an earlier candidate of this release), that section is replaced.
    """
    old = path.read_text() if path.exists() else ""
    heading = section_heading(section.component, section.version)
    if old.startswith(heading + " ") or old.startswith(heading + "\n"):
        rest = old.split("\n## ", 1)
        old = "## " + rest[1] if len(rest) == 2 else ""
    path.write_text(render_section(section, on) + "\n" + old)
