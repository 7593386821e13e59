"""git-id exception hierarchy."""

from __future__ import annotations


class GitIdError(Exception):
    """Base exception for all git-id errors."""


class DuplicateNameError(GitIdError):
    """Raised when a profile name is already taken (case-insensitive)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Profile "{name}" already exists')


class NotFoundError(GitIdError):
    """Raised when no stored profile matches a name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Profile "{name}" not found')


class ProfileNotFoundError(NotFoundError):
    """Raised by the command router for an unknown --profile value."""

    def __init__(self, name: str, known: list[str] | None = None):
        super().__init__(name)
        self.known = list(known or [])

    def __str__(self) -> str:
        available = ", ".join(self.known) or "(none)"
        return f'Profile "{self.name}" not found. Available profiles: {available}'


class InvalidProfileError(GitIdError):
    """Raised when a profile record fails validation."""


class NotARepositoryError(GitIdError):
    """Raised when local scope is requested outside a git repository."""

    def __init__(self, path: str | None = None):
        self.path = path
        super().__init__("Not a git repository. Use --global to set globally.")


class ConfigWriteError(GitIdError):
    """Raised when a git config setting cannot be written."""

    def __init__(self, key: str, detail: str = ""):
        self.key = key
        self.detail = detail
        msg = f"Failed to set {key}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class KeyGenerationError(GitIdError):
    """Raised when ssh-keygen fails or is missing."""


class ConnectivityTestError(GitIdError):
    """Raised when the SSH connectivity test cannot be run at all."""


class GitHubAuthError(GitIdError):
    """Raised when the GitHub device flow fails or times out."""


class LockTimeoutError(GitIdError):
    """Raised when an advisory file lock cannot be acquired in time."""
