"""Announcement templates.

Templates are Markdown files with ``__NAME__`` placeholders. Lists are
rendered to lines in Python first and substituted as plain text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date
from pathlib import Path

from .changelog import render_section
from .errors import ConfigurationError
from .models import ReleasePlan

TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER_RE = re.compile(r"__([A-Z][A-Z0-9_]*?)__")


def render_template(name: str, context: Mapping[str, str]) -> str:
    """Fill a bundled template.

    Args:
        name: Template file name without extension ("vote").
        context: Placeholder name (lowercase, e.g. "rc_suffix") → text.

    Raises:
        ConfigurationError: If the template uses a placeholder missing from
                            context.
    """
    template = (TEMPLATES_DIR / f"{name}.md").read_text()
    needed = set(_PLACEHOLDER_RE.findall(template))
    missing = sorted(n.lower() for n in needed if n.lower() not in context)
    if missing:
        raise ConfigurationError(
            f"template {name} is missing values for: {', '.join(missing)}",
            hint=f"check the placeholders in templates/{name}.md",
        )
    return _PLACEHOLDER_RE.sub(lambda m: str(context[m.group(1).lower()]), template)


def bullet_lines(items: Iterable[str]) -> str:
    lines = [f"- {item}" for item in items]
    return "\n".join(lines) if lines else "- (none)"


def plan_component_lines(plan: ReleasePlan) -> str:
    return bullet_lines(
        f"{e.name}: {e.old_version} → {e.new_version}" for e in plan.entries
    )


def plan_changelog(plan: ReleasePlan, on: date) -> str:
    """All changelog sections of a plan, as one Markdown block."""
    return "\n".join(
        render_section(e.changelog, on) for e in plan.entries if e.changelog
    )
