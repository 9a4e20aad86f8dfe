"""Release configuration read from ``[tool.tagwright]``.

Every key is optional; an absent table yields the defaults below.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError


class RetryConfig(BaseModel):
    """Bounded exponential backoff for remote operations."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=8.0, ge=0)
    jitter: float = Field(default=0.25, ge=0, le=1)


class ReleaseConfig(BaseModel):
    """Settings for one workspace.

    Attributes:
        primary: Component whose version defines the release series.
                 Inferred when omitted.
        tag_prefix: Prefix of every release tag ("v" → "v1.2.0-rc.1").
        remote: Git remote to push to and to infer the repository from.
        changelog_file: Changelog file name inside each component directory.
        discussion_category: Preferred discussion category name.
        artifact_prefix: Leading segment of source archive names.
        dist_url: Base URL of the distribution area for candidates.
        vote_days: Length of the vote window.
        release_commit_prefix: Subject prefix of preparation commits, which
                               are skipped when classifying history.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    primary: str | None = None
    tag_prefix: str = "v"
    remote: str = "origin"
    changelog_file: str = "CHANGELOG.md"
    discussion_category: str = "Releases"
    artifact_prefix: str = "apache"
    dist_url: str = "https://dist.apache.org/repos/dist/dev"
    vote_days: int = Field(default=3, ge=1)
    release_commit_prefix: str = "chore(release): prepare"
    retry: RetryConfig = Field(default_factory=RetryConfig)


def parse_config(table: dict | None) -> ReleaseConfig:
    """Validate a raw ``[tool.tagwright]`` table.

    Raises:
        ConfigurationError: If the table has unknown keys or bad values.
    """
    try:
        return ReleaseConfig.model_validate(dict(table or {}))
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid [tool.tagwright] configuration:\n{exc}",
            hint="check the keys and value types in the root pyproject.toml",
        ) from exc
