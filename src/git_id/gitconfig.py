"""Reading and writing git identity settings."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from git_id import config
from git_id.config import Profile
from git_id.exceptions import ConfigWriteError, NotARepositoryError
from git_id.ssh import key_path

logger = logging.getLogger(__name__)

LOCAL = "local"
GLOBAL = "global"
SCOPES = (LOCAL, GLOBAL)


def _check_scope(scope: str) -> None:
    if scope not in SCOPES:
        raise ValueError(f"Unknown config scope: {scope}")


def is_git_repository(cwd: Path | str | None = None) -> bool:
    """Check whether cwd (default: current directory) is inside a repository."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--git-dir"],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        logger.debug("git rev-parse failed: %s", e)
        return False
    return result.returncode == 0


def git_config_get(
    key: str,
    scope: str = LOCAL,
    cwd: Path | str | None = None,
) -> str | None:
    """Return the value of key at scope, or None if unset or unreadable."""
    _check_scope(scope)
    try:
        result = subprocess.run(
            ["git", "config", f"--{scope}", "--get", key],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        logger.debug("git config --%s --get %s failed: %s", scope, key, e)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_config_set(
    key: str,
    value: str,
    scope: str = LOCAL,
    cwd: Path | str | None = None,
) -> None:
    """Write key=value at scope; raises ConfigWriteError on failure."""
    _check_scope(scope)
    logger.debug("git config --%s %s %r", scope, key, value)
    try:
        result = subprocess.run(
            ["git", "config", f"--{scope}", key, value],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        raise ConfigWriteError(key, str(e)) from e
    if result.returncode != 0:
        raise ConfigWriteError(key, result.stderr.strip())


# git config exits 5 when asked to unset a key that is not set.
_UNSET_MISSING = 5


def git_config_unset(
    key: str,
    scope: str = LOCAL,
    cwd: Path | str | None = None,
) -> None:
    """Remove key at scope. A key that is already unset is not an error."""
    _check_scope(scope)
    logger.debug("git config --%s --unset %s", scope, key)
    try:
        result = subprocess.run(
            ["git", "config", f"--{scope}", "--unset", key],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        raise ConfigWriteError(key, str(e)) from e
    if result.returncode not in (0, _UNSET_MISSING):
        raise ConfigWriteError(key, result.stderr.strip())


def ssh_command(identity_file: Path | str, config_path: Path | str | None = None) -> str:
    """Build an ssh command line that only offers identity_file."""
    parts = ["ssh", "-i", str(identity_file), "-o", "IdentitiesOnly=yes"]
    if config_path is not None:
        parts += ["-F", str(config_path)]
    return shlex.join(parts)


def profile_ssh_command(profile: Profile, with_config: bool = True) -> str:
    ssh_config = config.SSH_CONFIG_FILE if with_config else None
    return ssh_command(key_path(profile.name), ssh_config)


def apply_profile(
    profile: Profile,
    scope: str = LOCAL,
    cwd: Path | str | None = None,
) -> None:
    """Write the profile's identity into git config at scope.

    Local scope requires cwd to be inside a repository. Settings are written
    one by one with no rollback; each write is idempotent, so a failed apply
    can simply be retried.
    """
    _check_scope(scope)
    if scope == LOCAL and not is_git_repository(cwd):
        raise NotARepositoryError(str(cwd) if cwd else None)

    git_config_set("user.name", profile.user_name, scope, cwd)
    git_config_set("user.email", profile.email, scope, cwd)

    if profile.ssh_key_configured:
        git_config_set("core.sshCommand", profile_ssh_command(profile), scope, cwd)
    else:
        # Drop a key command left behind by a previously applied profile.
        git_config_unset("core.sshCommand", scope, cwd)

    logger.info("Applied profile %s (%s)", profile.name, scope)


def _effective(key: str, cwd: Path | str | None) -> str | None:
    # Local first; any local failure (outside a repo, say) falls back to global.
    value = git_config_get(key, LOCAL, cwd)
    if value is None:
        value = git_config_get(key, GLOBAL, cwd)
    return value


def current_user(cwd: Path | str | None = None) -> str | None:
    return _effective("user.name", cwd)


def current_email(cwd: Path | str | None = None) -> str | None:
    return _effective("user.email", cwd)
