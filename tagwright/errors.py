"""Error types for tagwright.

Every failure carries a human-readable message, an optional remediation
hint and the process exit status the CLI should use. Library code raises
these; only the CLI turns them into exit codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TagRef


class TagwrightError(Exception):
    """Base class for all tagwright failures."""

    exit_code = 1

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConfigurationError(TagwrightError):
    """Workspace configuration cannot support a release (cycles, primary)."""

    exit_code = 2


class RepositoryStateError(TagwrightError):
    """The repository is not in a releasable state."""

    exit_code = 2


class ExternalError(TagwrightError):
    """An external tool or remote API failed.

    Attributes:
        operation: Name of the failing operation (e.g. "gh release create").
        cause: Underlying error text, usually stderr of the failed command.
    """

    exit_code = 3

    def __init__(
        self, operation: str, cause: str = "", hint: str | None = None
    ) -> None:
        message = f"{operation} failed"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message, hint)
        self.operation = operation
        self.cause = cause


class TransientError(ExternalError):
    """A remote failure worth retrying (network errors, rate limiting)."""


class AuthenticationError(ExternalError):
    """Credentials are missing or rejected. Never retried."""


class TagConflict(TagwrightError):
    """The tag a release step wants to create already exists.

    Attributes:
        existing: The tag record that is already present.
    """

    exit_code = 4

    def __init__(self, existing: TagRef, hint: str | None = None) -> None:
        super().__init__(f"tag already exists: {existing.name}", hint)
        self.existing = existing
