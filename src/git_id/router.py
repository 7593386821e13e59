"""``gitp``: run git with a ``--profile`` flag.

Usage::

    gitp clone git@github.com:me/repo.git --profile personal
    gitp push --profile work
    gitp push -p work
    gitp id list              # same as git-id list

``-p`` is also a git option (``git log -p``, ``git add -p``), so it only
selects a profile when the word after it is a known profile name. Anything
else is passed through to git untouched.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from git_id import gitconfig
from git_id.config import Profile
from git_id.exceptions import GitIdError, ProfileNotFoundError
from git_id.log import configure_logging
from git_id.output import error, info, success, warn
from git_id.ssh import host_alias
from git_id.store import ProfileStore

logger = logging.getLogger(__name__)

PROFILE_FLAG = "--profile"
SHORT_PROFILE_FLAG = "-p"

CLONE_COMMAND = "clone"
# Subcommands that talk to a remote over ssh.
CONNECTION_COMMANDS = frozenset({"push", "pull", "fetch", "remote"})

# Options of ``git clone`` that consume the following argument.
_CLONE_VALUE_OPTIONS = frozenset(
    {
        "-b", "--branch",
        "-o", "--origin",
        "-c", "--config",
        "-u", "--upload-pack",
        "-j", "--jobs",
        "--depth",
        "--reference",
        "--reference-if-able",
        "--template",
        "--separate-git-dir",
        "--shallow-since",
        "--shallow-exclude",
        "--filter",
        "--server-option",
        "--bundle-uri",
    }
)


@dataclass
class Invocation:
    """A git command line with the profile flag taken out."""

    args: list[str] = field(default_factory=list)
    profile_name: str | None = None

    @property
    def command(self) -> str | None:
        return self.args[0] if self.args else None


def parse_args(argv: list[str], known_names: Iterable[str] = ()) -> Invocation:
    """Split the profile flag out of argv.

    ``-p`` is only taken when it is followed by one of known_names.
    """
    known = {name.lower() for name in known_names}
    profile_name = None
    args: list[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == SHORT_PROFILE_FLAG and i + 1 < len(argv) and argv[i + 1].lower() in known:
            profile_name = argv[i + 1]
            i += 2
            continue
        if arg == PROFILE_FLAG:
            if i + 1 >= len(argv):
                raise GitIdError(f"{arg} requires a profile name")
            profile_name = argv[i + 1]
            i += 2
            continue
        elif arg.startswith(PROFILE_FLAG + "="):
            profile_name = arg.split("=", 1)[1]
            if not profile_name:
                raise GitIdError("--profile requires a profile name")
        else:
            args.append(arg)
        i += 1
    return Invocation(args=args, profile_name=profile_name)


def rewrite_url(arg: str, profile: Profile) -> str:
    """Point a github.com URL at the profile's ssh host alias."""
    if not profile.ssh_key_configured or "github.com" not in arg:
        return arg
    alias = host_alias(profile.name)
    for prefix, replacement in (
        ("git@github.com:", f"git@{alias}:"),
        ("https://github.com/", f"git@{alias}:"),
        ("ssh://git@github.com/", f"ssh://git@{alias}/"),
    ):
        if arg.startswith(prefix):
            return replacement + arg[len(prefix):]
    return arg


def transform_args(args: list[str], profile: Profile) -> list[str]:
    return [rewrite_url(arg, profile) for arg in args]


def repo_dir_from_url(url: str) -> str | None:
    """Directory git clone creates for url: last path segment minus .git."""
    tail = url.rstrip("/")
    tail = tail.rsplit("/", 1)[-1]
    tail = tail.rsplit(":", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail or None


def clone_target_dir(args: list[str]) -> str | None:
    """Work out the directory a ``clone ...`` argument list will create."""
    positional: list[str] = []
    rest = args[1:] if args and args[0] == CLONE_COMMAND else list(args)
    i = 0
    while i < len(rest):
        arg = rest[i]
        if arg == "--":
            positional.extend(rest[i + 1:])
            break
        if arg in _CLONE_VALUE_OPTIONS:
            i += 2
            continue
        if not arg.startswith("-"):
            positional.append(arg)
        i += 1

    if len(positional) >= 2:
        return positional[1]
    if positional:
        return repo_dir_from_url(positional[0])
    return None


def run_git(
    args: list[str],
    env: dict[str, str] | None = None,
    cwd: Path | str | None = None,
) -> int:
    """Run git with inherited stdio and return its exit code."""
    logger.debug("Running git %s", args)
    try:
        result = subprocess.run(["git", *args], env=env, cwd=cwd)
    except FileNotFoundError as e:
        raise GitIdError("git not found on PATH") from e
    return result.returncode


def _resolve(store: ProfileStore, name: str) -> Profile:
    profile = store.find(name)
    if profile is None:
        raise ProfileNotFoundError(name, store.names())
    return profile


def _connection_env(profile: Profile) -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_SSH_COMMAND"] = gitconfig.profile_ssh_command(profile, with_config=False)
    return env


def handle_clone(args: list[str], profile: Profile, cwd: Path) -> int:
    info(f'Cloning with profile "{profile.name}"...')
    code = run_git(args, cwd=cwd)
    if code != 0:
        return code

    target = clone_target_dir(args)
    if not target:
        return 0

    repo = cwd / target
    try:
        gitconfig.apply_profile(profile, gitconfig.LOCAL, cwd=repo)
    except GitIdError as e:
        warn(f"Could not apply profile: {e}")
        return 0

    success(f'Cloned with profile "{profile.name}"')
    info(f"User:  {profile.user_name}")
    info(f"Email: {profile.email}")
    return 0


def route(
    argv: list[str],
    store: ProfileStore | None = None,
    cwd: Path | None = None,
) -> int:
    """Run one git invocation, honouring a --profile flag. Returns the exit code."""
    store = store or ProfileStore()
    invocation = parse_args(argv, store.names())
    if invocation.profile_name is None:
        return run_git(invocation.args, cwd=cwd)

    profile = _resolve(store, invocation.profile_name)
    cwd = cwd or Path.cwd()
    args = transform_args(invocation.args, profile)
    command = invocation.command

    if command == CLONE_COMMAND:
        return handle_clone(args, profile, cwd)

    if gitconfig.is_git_repository(cwd):
        gitconfig.apply_profile(profile, gitconfig.LOCAL, cwd=cwd)

    env = None
    if command in CONNECTION_COMMANDS and profile.ssh_key_configured:
        env = _connection_env(profile)
    return run_git(args, env=env, cwd=cwd)


def main(argv: list[str] | None = None) -> None:
    from git_id.cli import cli

    configure_logging()
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv and argv[0] == "id":
        cli.main(args=argv[1:], prog_name="git id")
        return

    try:
        code = route(argv)
    except ProfileNotFoundError as e:
        error(f'Profile "{e.name}" not found.')
        info(f"Available profiles: {', '.join(e.known) or '(none)'}")
        info("Run `git-id list` to see all profiles.")
        sys.exit(1)
    except GitIdError as e:
        error(f"Error: {e}")
        sys.exit(1)
    sys.exit(code)
