"""Tests for reading and applying git identity settings."""

import shutil
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from git_id import gitconfig
from git_id.exceptions import ConfigWriteError, NotARepositoryError


def _config_writes(calls):
    return [cmd[2:] for cmd, _ in calls if cmd[:2] == ["git", "config"] and "--get" not in cmd]


class TestApplyProfile:
    def test_local_outside_repository(self, isolated, personal_profile):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=128, stdout="", stderr="fatal")
            with pytest.raises(NotARepositoryError, match="--global"):
                gitconfig.apply_profile(personal_profile, gitconfig.LOCAL)
        # Only the repository check ran.
        assert mock_run.call_count == 1

    def test_writes_name_and_email(self, isolated, personal_profile, fake_run):
        with patch("subprocess.run", side_effect=fake_run):
            gitconfig.apply_profile(personal_profile, gitconfig.LOCAL)

        assert fake_run.calls[0][0] == ["git", "rev-parse", "--git-dir"]
        assert _config_writes(fake_run.calls) == [
            ["--local", "user.name", "Me"],
            ["--local", "user.email", "p@x.com"],
            ["--local", "--unset", "core.sshCommand"],
        ]

    def test_global_skips_repository_check(self, isolated, personal_profile, fake_run):
        with patch("subprocess.run", side_effect=fake_run):
            gitconfig.apply_profile(personal_profile, gitconfig.GLOBAL)

        assert all(cmd[1] != "rev-parse" for cmd, _ in fake_run.calls)
        assert _config_writes(fake_run.calls)[0] == ["--global", "user.name", "Me"]

    def test_ssh_profile_sets_ssh_command(self, isolated, ssh_dir, work_profile, fake_run):
        with patch("subprocess.run", side_effect=fake_run):
            gitconfig.apply_profile(work_profile, gitconfig.LOCAL)

        writes = _config_writes(fake_run.calls)
        assert writes[-1][:2] == ["--local", "core.sshCommand"]
        command = writes[-1][2]
        assert f"-i {ssh_dir / 'id_ed25519_work'}" in command
        assert "-o IdentitiesOnly=yes" in command
        assert f"-F {ssh_dir / 'config'}" in command

    def test_uses_given_cwd(self, isolated, personal_profile, fake_run, tmp_path):
        with patch("subprocess.run", side_effect=fake_run):
            gitconfig.apply_profile(personal_profile, gitconfig.LOCAL, cwd=tmp_path)
        assert all(kwargs["cwd"] == tmp_path for _, kwargs in fake_run.calls)

    def test_write_failure_names_the_key(self, isolated, personal_profile):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                MagicMock(returncode=0, stdout=".git", stderr=""),
                MagicMock(returncode=0, stdout="", stderr=""),
                MagicMock(returncode=255, stdout="", stderr="could not lock config file"),
            ]
            with pytest.raises(ConfigWriteError) as excinfo:
                gitconfig.apply_profile(personal_profile, gitconfig.LOCAL)
        assert excinfo.value.key == "user.email"
        assert "could not lock config file" in str(excinfo.value)

    def test_unset_of_missing_key_is_fine(self, isolated, personal_profile):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                MagicMock(returncode=0, stdout=".git", stderr=""),
                MagicMock(returncode=0, stdout="", stderr=""),
                MagicMock(returncode=0, stdout="", stderr=""),
                MagicMock(returncode=5, stdout="", stderr=""),
            ]
            gitconfig.apply_profile(personal_profile, gitconfig.LOCAL)
        assert mock_run.call_args[0][0] == [
            "git", "config", "--local", "--unset", "core.sshCommand"
        ]

    def test_unset_failure(self, isolated, personal_profile):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                MagicMock(returncode=0, stdout=".git", stderr=""),
                MagicMock(returncode=0, stdout="", stderr=""),
                MagicMock(returncode=0, stdout="", stderr=""),
                MagicMock(returncode=255, stdout="", stderr="could not lock config file"),
            ]
            with pytest.raises(ConfigWriteError) as excinfo:
                gitconfig.apply_profile(personal_profile, gitconfig.LOCAL)
        assert excinfo.value.key == "core.sshCommand"

    def test_unknown_scope(self, personal_profile):
        with pytest.raises(ValueError):
            gitconfig.apply_profile(personal_profile, "system")


class TestSshCommand:
    def test_quotes_paths_with_spaces(self):
        command = gitconfig.ssh_command("/home/a b/.ssh/id", "/home/a b/.ssh/config")
        assert command == (
            "ssh -i '/home/a b/.ssh/id' -o IdentitiesOnly=yes -F '/home/a b/.ssh/config'"
        )

    def test_without_config(self):
        assert gitconfig.ssh_command("/k") == "ssh -i /k -o IdentitiesOnly=yes"


class TestCurrentIdentity:
    @patch("subprocess.run")
    def test_local_value_wins(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="Local Me\n")
        assert gitconfig.current_user() == "Local Me"
        assert mock_run.call_count == 1
        assert mock_run.call_args[0][0] == ["git", "config", "--local", "--get", "user.name"]

    @patch("subprocess.run")
    def test_falls_back_to_global(self, mock_run):
        mock_run.side_effect = [
            MagicMock(returncode=1, stdout=""),
            MagicMock(returncode=0, stdout="global@x.com\n"),
        ]
        assert gitconfig.current_email() == "global@x.com"
        assert mock_run.call_args[0][0] == ["git", "config", "--global", "--get", "user.email"]

    @patch("subprocess.run")
    def test_falls_back_when_git_errors(self, mock_run):
        mock_run.side_effect = [
            OSError("no repo"),
            MagicMock(returncode=0, stdout="G\n"),
        ]
        assert gitconfig.current_user() == "G"

    @patch("subprocess.run")
    def test_unset_everywhere(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        assert gitconfig.current_user() is None


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestAgainstRealGit:
    @pytest.fixture
    def git_env(self, monkeypatch, tmp_path):
        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
        monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
        return home

    @pytest.fixture
    def repo(self, tmp_path, git_env):
        path = tmp_path / "repo"
        path.mkdir()
        subprocess.run(["git", "init", "-q"], cwd=path, check=True)
        return path

    def test_local_overrides_global(self, isolated, repo, personal_profile, work_profile):
        gitconfig.apply_profile(work_profile, gitconfig.GLOBAL, cwd=repo)
        gitconfig.apply_profile(personal_profile, gitconfig.LOCAL, cwd=repo)

        assert gitconfig.current_email(cwd=repo) == "p@x.com"
        assert gitconfig.git_config_get("user.email", gitconfig.GLOBAL, cwd=repo) == "w@x.com"

    def test_outside_repo_reads_global(self, isolated, tmp_path, git_env, work_profile):
        outside = tmp_path / "outside"
        outside.mkdir()
        gitconfig.apply_profile(work_profile, gitconfig.GLOBAL, cwd=outside)

        assert not gitconfig.is_git_repository(outside)
        assert gitconfig.current_user(cwd=outside) == "Work Person"
        with pytest.raises(NotARepositoryError):
            gitconfig.apply_profile(work_profile, gitconfig.LOCAL, cwd=outside)

    def test_switching_to_keyless_profile_drops_ssh_command(
        self, isolated, repo, work_profile, personal_profile
    ):
        gitconfig.apply_profile(work_profile, gitconfig.LOCAL, cwd=repo)
        assert gitconfig.git_config_get("core.sshCommand", gitconfig.LOCAL, cwd=repo)

        gitconfig.apply_profile(personal_profile, gitconfig.LOCAL, cwd=repo)

        assert gitconfig.current_email(cwd=repo) == "p@x.com"
        assert gitconfig.git_config_get("core.sshCommand", gitconfig.LOCAL, cwd=repo) is None

    def test_keyless_profile_on_clean_repo(self, isolated, repo, personal_profile):
        gitconfig.apply_profile(personal_profile, gitconfig.LOCAL, cwd=repo)
        assert gitconfig.git_config_get("core.sshCommand", gitconfig.LOCAL, cwd=repo) is None
