"""Locations and the on-disk profile record file for git-id."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from git_id.exceptions import InvalidProfileError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("GIT_ID_HOME", "~/.git-id")).expanduser()
PROFILES_FILE = CONFIG_DIR / "profiles.json"

SSH_DIR = Path(os.environ.get("GIT_ID_SSH_DIR", "~/.ssh")).expanduser()
SSH_CONFIG_FILE = SSH_DIR / "config"

PROFILE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Profile:
    """A named git identity."""

    name: str
    user_name: str
    email: str
    linked_account: str | None = None
    ssh_key_configured: bool = False
    created_at: str = field(default_factory=_now)

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.lower()


def profile_to_dict(profile: Profile) -> dict[str, Any]:
    d: dict[str, Any] = {
        "name": profile.name,
        "userName": profile.user_name,
        "email": profile.email,
    }
    if profile.linked_account:
        d["linkedAccount"] = profile.linked_account
    d["sshKeyConfigured"] = profile.ssh_key_configured
    d["createdAt"] = profile.created_at
    return d


def profile_from_dict(d: dict) -> Profile:
    return Profile(
        name=d["name"],
        user_name=d["userName"],
        email=d["email"],
        # Older records call the linked account githubUsername.
        linked_account=d.get("linkedAccount", d.get("githubUsername")) or None,
        ssh_key_configured=bool(d.get("sshKeyConfigured", False)),
        created_at=d.get("createdAt") or _now(),
    )


def validate_profile(profile: Profile) -> None:
    """Raise InvalidProfileError if the record cannot be stored."""
    for label, value in (
        ("name", profile.name),
        ("user name", profile.user_name),
        ("email", profile.email),
    ):
        if not isinstance(value, str):
            raise InvalidProfileError(f"Profile {label} must be a string, got {value!r}")
    if not PROFILE_NAME_RE.match(profile.name):
        raise InvalidProfileError(
            f'Invalid profile name "{profile.name}": only letters, numbers, '
            "underscores, and hyphens allowed"
        )
    if not profile.user_name.strip():
        raise InvalidProfileError("User name is required")
    if not profile.email.strip():
        raise InvalidProfileError("Email is required")


def load_profiles(path: Path | None = None) -> list[Profile]:
    """Load profiles from disk.

    A missing, unreadable or corrupt file yields an empty list. A file holding
    any record that would fail validation counts as corrupt.
    """
    path = path or PROFILES_FILE
    if not path.exists():
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        profiles = [profile_from_dict(p) for p in data]
        for profile in profiles:
            validate_profile(profile)
        return profiles
    except (OSError, ValueError, KeyError, TypeError, InvalidProfileError) as e:
        logger.warning("Ignoring unreadable profile file %s: %s", path, e)
        return []


def save_profiles(profiles: list[Profile], path: Path | None = None) -> None:
    """Overwrite the profile file with the full collection."""
    path = path or PROFILES_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    data = [profile_to_dict(p) for p in profiles]
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, path)
    logger.debug("Saved %d profile(s) to %s", len(profiles), path)
