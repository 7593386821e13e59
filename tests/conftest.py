"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest

from git_id import config
from git_id.config import Profile
from git_id.store import ProfileStore


@pytest.fixture
def tmp_profiles(tmp_path):
    """Return a path for a temporary profile file."""
    return tmp_path / "git-id" / "profiles.json"


@pytest.fixture
def ssh_dir(tmp_path):
    d = tmp_path / ".ssh"
    d.mkdir(mode=0o700)
    return d


@pytest.fixture
def isolated(monkeypatch, tmp_profiles, ssh_dir):
    """Point every default git-id location into tmp_path."""
    monkeypatch.setattr(config, "CONFIG_DIR", tmp_profiles.parent)
    monkeypatch.setattr(config, "PROFILES_FILE", tmp_profiles)
    monkeypatch.setattr(config, "SSH_DIR", ssh_dir)
    monkeypatch.setattr(config, "SSH_CONFIG_FILE", ssh_dir / "config")
    return tmp_profiles


@pytest.fixture
def work_profile():
    return Profile(
        name="work",
        user_name="Work Person",
        email="w@x.com",
        linked_account="workperson",
        ssh_key_configured=True,
        created_at="2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def personal_profile():
    return Profile(
        name="personal",
        user_name="Me",
        email="p@x.com",
        created_at="2024-01-02T00:00:00+00:00",
    )


@pytest.fixture
def store(isolated, work_profile, personal_profile):
    """A store at the isolated default path holding work and personal."""
    s = ProfileStore(isolated)
    s.add(work_profile)
    s.add(personal_profile)
    return s


@pytest.fixture
def fake_run():
    """subprocess.run stand-in that records argv and succeeds."""
    calls = []

    def run(cmd, *args, **kwargs):
        calls.append((list(cmd), kwargs))
        return MagicMock(returncode=0, stdout="", stderr="")

    run.calls = calls
    return run
