"""GitHub operations through the gh CLI.

Every call goes through the retry policy: transient failures are retried
with backoff, authentication and other failures surface immediately with
the operation name.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .errors import ExternalError
from .retry import RetryPolicy, classify_failure
from .shell import run

_CATEGORIES_QUERY = """
query($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    id
    discussionCategories(first: 50) { nodes { id name } }
  }
}
"""

_CREATE_DISCUSSION = """
mutation($repo: ID!, $category: ID!, $title: String!, $body: String!) {
  createDiscussion(input: {repositoryId: $repo, categoryId: $category,
                           title: $title, body: $body}) {
    discussion { url }
  }
}
"""


class DiscussionCategory(BaseModel):
    id: str
    name: str


def choose_category(
    categories: list[DiscussionCategory], preferred: str
) -> DiscussionCategory:
    """Pick the preferred category (case-insensitive) or the first one."""
    if not categories:
        raise ExternalError(
            "discussion categories",
            "repository has no discussion categories",
            hint="enable GitHub Discussions first",
        )
    for category in categories:
        if category.name.lower() == preferred.lower():
            return category
    return categories[0]


class GitHub:
    """Hosting platform collaborator for one repository."""

    def __init__(self, owner: str, repo: str, policy: RetryPolicy | None = None) -> None:
        self.owner = owner
        self.repo = repo
        self.policy = policy or RetryPolicy()

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _gh(self, operation: str, *args: str) -> str:
        """Run gh with retries and return stdout."""

        def _call() -> str:
            result = run("gh", *args)
            if result.returncode != 0:
                raise classify_failure(operation, result.stderr)
            return result.stdout

        return self.policy.call(operation, _call)

    def _graphql(self, operation: str, query: str, **variables: str) -> dict[str, Any]:
        args = ["api", "graphql", "-f", f"query={query}"]
        for key, value in variables.items():
            args += ["-f", f"{key}={value}"]
        return json.loads(self._gh(operation, *args))

    def discussion_categories(self) -> tuple[str, list[DiscussionCategory]]:
        """Repository node id and its discussion categories."""
        data = self._graphql(
            "gh discussion categories",
            _CATEGORIES_QUERY,
            owner=self.owner,
            name=self.repo,
        )
        repository = data["data"]["repository"]
        nodes = repository["discussionCategories"]["nodes"]
        return repository["id"], [DiscussionCategory(**n) for n in nodes]

    def create_discussion(self, category: str, title: str, body: str) -> str:
        """Open a discussion and return its URL."""
        repo_id, categories = self.discussion_categories()
        chosen = choose_category(categories, category)
        data = self._graphql(
            "gh discussion create",
            _CREATE_DISCUSSION,
            repo=repo_id,
            category=chosen.id,
            title=title,
            body=body,
        )
        return data["data"]["createDiscussion"]["discussion"]["url"]

    def release_exists(self, tag: str) -> bool:
        def _view() -> bool:
            result = run(
                "gh", "release", "view", tag, "--repo", self.slug, "--json", "tagName"
            )
            if result.returncode == 0:
                return True
            if "release not found" in result.stderr.lower():
                return False
            raise classify_failure("gh release view", result.stderr)

        return self.policy.call("gh release view", _view)

    def create_release(self, tag: str, title: str, body: str, prerelease: bool) -> None:
        args = [
            "release", "create", tag,
            "--repo", self.slug,
            "--verify-tag",
            "--title", title,
            "--notes", body,
        ]
        if prerelease:
            args.append("--prerelease")
        self._gh("gh release create", *args)

    def list_assets(self, tag: str) -> list[str]:
        output = self._gh(
            "gh release view", "release", "view", tag, "--repo", self.slug, "--json", "assets"
        )
        return sorted(a["name"] for a in json.loads(output).get("assets", []))

    def upload_assets(self, tag: str, files: list[Path]) -> None:
        """Upload files one at a time so a retry never resends finished ones."""
        for f in files:
            self._gh(
                f"gh release upload {f.name}",
                "release", "upload", tag, str(f), "--repo", self.slug,
            )
            print(f"  uploaded {f.name}")

    def download_assets(self, tag: str, dest: Path, pattern: str | None = None) -> list[Path]:
        dest.mkdir(parents=True, exist_ok=True)
        args = ["release", "download", tag, "--repo", self.slug, "--dir", str(dest), "--clobber"]
        if pattern:
            args += ["--pattern", pattern]
        self._gh("gh release download", *args)
        return sorted(p for p in dest.iterdir() if p.is_file())
