"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running shell commands
and git operations, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess

from .errors import ExternalError


def git(*args: str, check: bool = True, cwd: str | None = None) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Directory to run in; defaults to the current directory.

    Returns:
        Stripped stdout from the git command.

    Raises:
        ExternalError: If check is True and git exits non-zero.
    """
    result = subprocess.run(
        ["git", *args], capture_output=True, text=True, check=False, cwd=cwd
    )
    if check and result.returncode != 0:
        raise ExternalError(f"git {args[0]}", result.stderr.strip())
    return result.stdout.strip()


def run(
    *args: str, cwd: str | None = None, capture: bool = True
) -> subprocess.CompletedProcess[str]:
    """Run an arbitrary command without raising on failure.

    Callers inspect ``returncode`` and ``stderr`` themselves so they can
    classify failures (transient, authentication, semantic).

    Args:
        *args: Command and arguments (e.g., "gh", "release", "view").
        cwd: Directory to run in.
        capture: Capture stdout/stderr as text (default). When False,
                 output streams to the terminal.
    """
    return subprocess.run(
        args, capture_output=capture, text=True, check=False, cwd=cwd
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
