"""Tests for tagwright.plan: whole planning runs over a snapshot."""

from __future__ import annotations

import pytest
from conftest import make_commit, make_snapshot

from tagwright.changelog import BREAKING, FIXES
from tagwright.errors import ConfigurationError, TagConflict
from tagwright.models import Component, PlanningNoop, ReleasePlan
from tagwright.plan import build_release_plan, describe_plan
from tagwright.tags import parse_tag


def _plan(result: ReleasePlan | PlanningNoop) -> ReleasePlan:
    assert isinstance(result, ReleasePlan)
    return result


class TestBuildReleasePlan:
    def test_pre_1_0_feature_is_patch_rc1(self) -> None:
        """0.9.0 with a feature becomes 0.9.1, candidate 1."""
        snapshot = make_snapshot(
            [Component(name="foo", path=".", version="0.9.0")],
            [make_commit("a", "feat: add thing", "src/foo.py")],
            primary="foo",
        )
        plan = _plan(build_release_plan(snapshot))
        assert plan.base_version == "0.9.1"
        assert plan.rc == 1
        assert plan.tag is not None and plan.tag.name == "v0.9.1-rc.1"

    def test_breaking_refactor_is_major(self) -> None:
        """A breaking refactor wins over a fix."""
        snapshot = make_snapshot(
            [Component(name="foo", path=".", version="2.3.0")],
            [
                make_commit("a", "fix: off by one", "src/a.py"),
                make_commit("b", "refactor!: new config format", "src/b.py"),
            ],
            primary="foo",
        )
        plan = _plan(build_release_plan(snapshot))
        entry = plan.entry("foo")
        assert entry is not None and entry.changelog is not None
        assert plan.base_version == "3.0.0"
        assert list(entry.changelog.as_dict()) == [BREAKING, FIXES]

    def test_non_primary_changes_only_is_noop(
        self, chain_components: list[Component]
    ) -> None:
        """Changes only outside the primary are a no-op."""
        snapshot = make_snapshot(
            chain_components,
            [make_commit("a", "feat: new flag", "packages/cli/main.py")],
            primary="core",
        )
        result = build_release_plan(snapshot)
        assert isinstance(result, PlanningNoop)
        assert result.changed == ("cli",)

    def test_constraint_propagation(self, chain_components: list[Component]) -> None:
        """Dependents are pinned without being bumped."""
        snapshot = make_snapshot(
            chain_components,
            [make_commit("a", "feat: faster", "packages/core/x.py")],
            primary="core",
        )
        plan = _plan(build_release_plan(snapshot))
        assert [e.name for e in plan.entries] == ["core"]
        updates = {u.name: u for u in plan.manifest_updates}
        assert updates["api"].constraints == {"core": "1.1.0"}
        assert updates["api"].version == "2.0.0"
        assert updates["cli"].constraints == {"api": "2.0.0"}

    def test_affects_footer_adds_component(
        self, chain_components: list[Component]
    ) -> None:
        """affects: pulls a component into the plan."""
        snapshot = make_snapshot(
            chain_components,
            [make_commit("a", "fix: shared\n\naffects: cli", "packages/core/x.py")],
            primary="core",
        )
        plan = _plan(build_release_plan(snapshot))
        assert [e.name for e in plan.entries] == ["core", "cli"]

    def test_next_rc_number(self) -> None:
        """Candidate numbers continue after existing ones."""
        tags = [parse_tag("v1.0.1-rc.1", "1" * 40), parse_tag("v1.0.1-rc.2", "2" * 40)]
        snapshot = make_snapshot(
            [Component(name="foo", path=".", version="1.0.0")],
            [make_commit("a", "fix: x", "a.py")],
            primary="foo",
            tags=[t for t in tags if t],
        )
        plan = _plan(build_release_plan(snapshot))
        assert plan.tag is not None and plan.tag.name == "v1.0.1-rc.3"

    def test_rerun_on_tagged_head_conflicts(self) -> None:
        """Planning again on a tagged HEAD is a conflict, not a new plan."""
        head = "f" * 40
        tag = parse_tag("v1.0.1-rc.1", head)
        assert tag is not None
        snapshot = make_snapshot(
            [Component(name="foo", path=".", version="1.0.0")],
            [
                make_commit("a", "fix: x", "a.py"),
                make_commit("b", "chore(release): prepare v1.0.1", "pyproject.toml"),
            ],
            primary="foo",
            tags=[tag],
            head=head,
        )
        with pytest.raises(TagConflict) as info:
            build_release_plan(snapshot)
        assert info.value.existing.name == "v1.0.1-rc.1"

    def test_same_snapshot_same_plan(self, chain_components: list[Component]) -> None:
        """Planning is deterministic."""
        snapshot = make_snapshot(
            chain_components,
            [make_commit("a", "feat: faster", "packages/core/x.py")],
            primary="core",
        )
        assert build_release_plan(snapshot) == build_release_plan(snapshot)

    def test_cycle_is_configuration_error(self) -> None:
        """A dependency cycle stops planning."""
        snapshot = make_snapshot(
            [
                Component(name="a", path="a", version="1.0.0", deps=("b",)),
                Component(name="b", path="b", version="1.0.0", deps=("a",)),
            ],
            [make_commit("a", "fix: x", "a/x.py")],
            primary="a",
        )
        with pytest.raises(ConfigurationError):
            build_release_plan(snapshot)


def test_describe_plan(chain_components: list[Component]) -> None:
    """The dry-run summary lists bumps and pins."""
    snapshot = make_snapshot(
        chain_components,
        [make_commit("a", "feat: faster", "packages/core/x.py")],
        primary="core",
    )
    text = describe_plan(_plan(build_release_plan(snapshot)))
    assert "release 1.1.0 (v1.1.0-rc.1)" in text
    assert "core: 1.0.0 → 1.1.0 (minor, 1 changes)" in text
    assert "api pins core==1.1.0" in text
    assert "cli: constraints only" in text
