"""CLI entry point for tagwright."""

from __future__ import annotations

import sys
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click

from tagwright.errors import TagwrightError
from tagwright.models import PlanningNoop
from tagwright.pipeline import (
    RunOptions,
    run_prerelease,
    run_release,
    run_start,
    run_sync,
    run_vote,
)

F = TypeVar("F", bound=Callable[..., Any])


def _fail(exc: TagwrightError) -> None:
    """Print an error with its hint and exit with the error's status."""
    print(f"Error: {exc.message}", file=sys.stderr)
    if exc.hint:
        print(f"hint: {exc.hint}", file=sys.stderr)
    sys.exit(exc.exit_code)


def handle_errors(fn: F) -> F:
    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except TagwrightError as exc:
            _fail(exc)

    return wrapper  # type: ignore[return-value]


@click.group()
@click.version_option(package_name="tagwright")
@click.option("--dry-run", is_flag=True, help="Print what would happen; change nothing.")
@click.option("--since", metavar="REF", help="Base ref instead of the last stable tag.")
@click.option(
    "--artifact-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for artifacts (default: target/tagwright/<tag>).",
)
@click.option(
    "--local-assets",
    is_flag=True,
    help="Produce artifacts locally; skip pushes and uploads.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    dry_run: bool,
    since: str | None,
    artifact_dir: Path | None,
    local_assets: bool,
) -> None:
    """Plan and publish release candidates for a uv workspace."""
    ctx.obj = RunOptions(
        dry_run=dry_run,
        since=since,
        artifact_dir=artifact_dir,
        local_assets=local_assets,
    )


@cli.command()
@click.pass_obj
@handle_errors
def start(options: RunOptions) -> None:
    """Open the release kickoff discussion."""
    run_start(options)


@cli.command()
@click.pass_obj
@handle_errors
def prerelease(options: RunOptions) -> None:
    """Cut the next release candidate."""
    result = run_prerelease(options)
    if isinstance(result, PlanningNoop):
        click.echo("Nothing to release.")
    elif options.dry_run:
        click.echo("Dry run: no changes made.")
    else:
        click.echo(f"✓ {result.tag.name if result.tag else result.base_version}")


@cli.command()
@click.pass_obj
@handle_errors
def sync(options: RunOptions) -> None:
    """Copy the latest candidate's artifacts to the distribution area."""
    run_sync(options)


@cli.command()
@click.pass_obj
@handle_errors
def vote(options: RunOptions) -> None:
    """Open the vote discussion for the latest candidate."""
    run_vote(options)


@cli.command()
@click.option("--rc", type=int, help="Candidate number to promote (default: latest).")
@click.pass_obj
@handle_errors
def release(options: RunOptions, rc: int | None) -> None:
    """Promote a release candidate to a stable release."""
    stable = run_release(options, rc=rc)
    if not options.dry_run:
        click.echo(f"✓ {stable.name}")
