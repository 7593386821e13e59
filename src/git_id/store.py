"""Profile store: the ordered, name-unique collection of profiles."""

from __future__ import annotations

import copy
import logging
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Callable

from git_id import config
from git_id.config import Profile, load_profiles, save_profiles, validate_profile
from git_id.exceptions import DuplicateNameError, InvalidProfileError, NotFoundError
from git_id.locking import file_lock

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {f.name for f in fields(Profile)}


class ProfileStore:
    """Profiles backed by a single JSON file.

    The collection is loaded once on construction. Each mutation takes the
    file lock, re-reads the file, applies the change and rewrites the whole
    file, so the in-memory view is refreshed on every write.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or config.PROFILES_FILE
        self._profiles: list[Profile] = load_profiles(self.path)

    def list(self) -> list[Profile]:
        return copy.deepcopy(self._profiles)

    def names(self) -> list[str]:
        return [p.name for p in self._profiles]

    def find(self, name: str) -> Profile | None:
        profile = _find(self._profiles, name)
        return copy.deepcopy(profile) if profile else None

    def add(self, profile: Profile) -> Profile:
        validate_profile(profile)

        def mutate(profiles: list[Profile]) -> None:
            if _find(profiles, profile.name):
                raise DuplicateNameError(profile.name)
            profiles.append(copy.deepcopy(profile))

        self._mutate(mutate)
        logger.info("Added profile %s", profile.name)
        return profile

    def update(self, name: str, **changes: Any) -> Profile:
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise InvalidProfileError(
                f"Unknown profile field(s): {', '.join(sorted(unknown))}"
            )
        updated: list[Profile] = []

        def mutate(profiles: list[Profile]) -> None:
            index = _index(profiles, name)
            if index is None:
                raise NotFoundError(name)
            new = replace(profiles[index], **changes)
            validate_profile(new)
            for i, other in enumerate(profiles):
                if i != index and other.matches(new.name):
                    raise DuplicateNameError(new.name)
            profiles[index] = new
            updated.append(new)

        self._mutate(mutate)
        logger.info("Updated profile %s", name)
        return copy.deepcopy(updated[0])

    def delete(self, name: str) -> None:
        def mutate(profiles: list[Profile]) -> None:
            index = _index(profiles, name)
            if index is None:
                raise NotFoundError(name)
            del profiles[index]

        self._mutate(mutate)
        logger.info("Deleted profile %s", name)

    def delete_all(self) -> None:
        self._mutate(lambda profiles: profiles.clear())
        logger.info("Deleted all profiles")

    def _mutate(self, change: Callable[[list[Profile]], None]) -> None:
        with file_lock(self.path):
            profiles = load_profiles(self.path)
            change(profiles)
            save_profiles(profiles, self.path)
        self._profiles = profiles


def _index(profiles: list[Profile], name: str) -> int | None:
    for i, p in enumerate(profiles):
        if p.matches(name):
            return i
    return None


def _find(profiles: list[Profile], name: str) -> Profile | None:
    index = _index(profiles, name)
    return profiles[index] if index is not None else None
