"""CLI interface for git-id."""

from __future__ import annotations

import functools
import sys
from datetime import date
from pathlib import Path

import click

from git_id import __version__, gitconfig, shell
from git_id.config import PROFILE_NAME_RE, Profile
from git_id.exceptions import GitIdError, KeyGenerationError
from git_id.github import GitHubClient
from git_id.log import configure_logging
from git_id.output import error, heading, info, styled, success, warn
from git_id.router import clone_target_dir, handle_clone, transform_args
from git_id.ssh import SshManager, host_alias
from git_id.store import ProfileStore


def fail(msg: str, code: int = 1) -> None:
    error(msg)
    sys.exit(code)


def handle_errors(func):
    """Turn git-id errors into a red message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GitIdError as e:
            fail(f"Error: {e}")

    return wrapper


def _describe(profile: Profile) -> str:
    ssh = styled(" [SSH]", fg="cyan") if profile.ssh_key_configured else ""
    return f"{profile.name} - {profile.user_name} <{profile.email}>{ssh}"


def select_profile(profiles: list[Profile], message: str = "Select a profile") -> Profile:
    """Numbered interactive choice between profiles."""
    info(f"{message}:")
    for i, profile in enumerate(profiles, 1):
        info(f"  {i}. {_describe(profile)}")
    choice = click.prompt(
        "  Choice", type=click.IntRange(1, len(profiles)), default=1
    )
    return profiles[choice - 1]


def _pick(
    store: ProfileStore,
    name: str | None,
    message: str,
    profiles: list[Profile] | None = None,
    not_found: str = "not found",
) -> Profile:
    profiles = store.list() if profiles is None else profiles
    if not name:
        return select_profile(profiles, message)
    for profile in profiles:
        if profile.matches(name):
            return profile
    error(f'Profile "{name}" {not_found}.')
    fail(f"Available profiles: {', '.join(p.name for p in profiles)}")


@click.group()
@click.version_option(version=__version__, prog_name="git-id")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Manage multiple Git identities with automatic GitHub SSH key setup."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(verbose)


@cli.command("list")
def list_cmd() -> None:
    """List all configured Git profiles."""
    profiles = ProfileStore().list()
    if not profiles:
        warn("No profiles configured. Run `git-id add` to create one.")
        return

    heading("Configured Git Profiles")
    click.echo()

    current_user = gitconfig.current_user()
    current_email = gitconfig.current_email()

    for profile in profiles:
        is_current = (
            profile.email == current_email and profile.user_name == current_user
        )
        marker = styled(" <- current", fg="green") if is_current else ""
        ssh = styled(" [SSH]", fg="cyan") if profile.ssh_key_configured else ""
        info(f"{styled(profile.name, bold=True)}{marker}{ssh}")
        info(f"  User:  {profile.user_name}")
        info(f"  Email: {profile.email}")
        if profile.linked_account:
            info(f"  GitHub: {profile.linked_account}")
        click.echo()


def _prompt_profile_name(store: ProfileStore) -> str:
    while True:
        name = click.prompt('  Profile name (e.g. "work", "personal")').strip()
        if not PROFILE_NAME_RE.match(name):
            error("Only letters, numbers, underscores, and hyphens allowed.")
        elif store.find(name):
            error("A profile with this name already exists.")
        else:
            return name


def _prompt_email() -> str:
    while True:
        email = click.prompt("  Git email").strip()
        if "@" in email:
            return email
        error("Please enter a valid email.")


def _key_title(profile_name: str) -> str:
    return f"git-id: {profile_name} ({date.today().isoformat()})"


def _create_with_github(name: str, store: ProfileStore, ssh: SshManager) -> Profile:
    with GitHubClient() as client:
        info("Initializing GitHub authentication...")
        device = client.request_device_code()

        heading("GitHub Authentication")
        info(f"1. Open: {styled(device.verification_uri, underline=True)}")
        info(f"2. Enter code: {styled(device.user_code, fg='yellow', bold=True)}")
        click.echo()
        click.launch(device.verification_uri)

        info("Waiting for GitHub authorization...")
        client.poll_for_token(device)
        success("GitHub authorization successful!")

        user = client.get_user()
        if user is None:
            raise GitIdError("Failed to get user info from GitHub")
        email = client.get_primary_email()
        success(f"Logged in as {styled(user.login, bold=True)}")

        user_name = user.name or user.login
        email = email or f"{user.login}@users.noreply.github.com"

        info("Generating SSH key...")
        key = ssh.generate_key(email, name)
        success("SSH key generated")

        info("Uploading SSH key to GitHub...")
        if client.upload_ssh_key(key.public_key, _key_title(name)):
            success("SSH key uploaded to GitHub")
        else:
            warn("Could not upload SSH key (you may need to add it manually)")

    ssh.configure_alias(name)
    success("SSH config updated")
    ssh.add_to_agent(name)

    return store.add(
        Profile(
            name=name,
            user_name=user_name,
            email=email,
            linked_account=user.login,
            ssh_key_configured=True,
        )
    )


def _create_manually(name: str, store: ProfileStore, ssh: SshManager) -> Profile:
    user_name = ""
    while not user_name:
        user_name = click.prompt("  Git user name").strip()
    email = _prompt_email()
    linked = click.prompt(
        "  GitHub username (optional, for SSH)", default="", show_default=False
    ).strip()
    generate = click.confirm("  Generate SSH key for this profile?", default=True)

    ssh_key_configured = False
    if generate:
        info("Generating SSH key...")
        try:
            key = ssh.generate_key(email, name)
        except KeyGenerationError as e:
            warn(f"SSH key generation failed: {e}")
        else:
            success("SSH key generated")
            ssh.configure_alias(name)
            ssh_key_configured = True
            info(f"SSH host alias configured: {host_alias(name)}")
            warn("Don't forget to add the public key to GitHub!")
            info(f"Key location: {key.public_key_path}")

    return store.add(
        Profile(
            name=name,
            user_name=user_name,
            email=email,
            linked_account=linked or None,
            ssh_key_configured=ssh_key_configured,
        )
    )


@cli.command()
@click.option("-n", "--name", default=None, help="Profile name.")
@click.option("--github", "flow", flag_value="github", help="Sign in with GitHub (recommended).")
@click.option("--manual", "flow", flag_value="manual", help="Manual setup without GitHub.")
@handle_errors
def add(name: str | None, flow: str | None) -> None:
    """Create a new Git profile."""
    store = ProfileStore()
    ssh = SshManager()
    click.echo()

    if flow is None:
        info("How would you like to set up your profile?")
        info("  1. Sign in with GitHub (recommended)")
        info("  2. Manual setup")
        choice = click.prompt("  Choice", type=click.IntRange(1, 2), default=1)
        flow = "github" if choice == 1 else "manual"

    if name:
        if not PROFILE_NAME_RE.match(name):
            fail("Only letters, numbers, underscores, and hyphens allowed.")
        if store.find(name):
            fail(f'Profile "{name}" already exists.')
    else:
        name = _prompt_profile_name(store)

    if flow == "github":
        profile = _create_with_github(name, store, ssh)
    else:
        profile = _create_manually(name, store, ssh)

    click.echo()
    success(f'Profile "{profile.name}" created successfully!')
    if profile.ssh_key_configured:
        owner = profile.linked_account or "user"
        info(f"SSH host alias: git@{host_alias(profile.name)}:{owner}/repo.git")
    click.echo()


@cli.command()
@click.argument("profile_name", required=False)
@click.option("--global", "-g", "use_global", is_flag=True, help="Apply globally instead of locally.")
@handle_errors
def use(profile_name: str | None, use_global: bool) -> None:
    """Apply a Git profile to the current repository."""
    store = ProfileStore()
    if not store.list():
        warn("No profiles configured. Run `git-id add` to create one.")
        return

    profile = _pick(store, profile_name, "Select a profile")
    scope = gitconfig.GLOBAL if use_global else gitconfig.LOCAL
    gitconfig.apply_profile(profile, scope)

    click.echo()
    success(f'Applied profile "{profile.name}" ({scope})')
    info(f"User:  {profile.user_name}")
    info(f"Email: {profile.email}")
    if profile.ssh_key_configured:
        info(styled(
            f"SSH: Use git@{host_alias(profile.name)}:user/repo.git for cloning",
            fg="cyan",
        ))
    click.echo()


@cli.command()
def current() -> None:
    """Show the current Git identity."""
    user = gitconfig.current_user()
    email = gitconfig.current_email()

    if not user and not email:
        warn("No Git identity configured for this repository.")
        return

    heading("Current Git Identity")
    click.echo()
    info(f"User:  {user or '(not set)'}")
    info(f"Email: {email or '(not set)'}")

    for profile in ProfileStore().list():
        if profile.email == email:
            click.echo()
            success(f"Profile: {profile.name}")
            break
    click.echo()


@cli.command()
@click.argument("profile_name")
@click.option("--user-name", default=None, help="New git user.name.")
@click.option("--email", default=None, help="New git user.email.")
@click.option("--linked-account", default=None, help="GitHub username.")
@handle_errors
def edit(
    profile_name: str,
    user_name: str | None,
    email: str | None,
    linked_account: str | None,
) -> None:
    """Change the stored details of a profile."""
    changes = {}
    if user_name is not None:
        changes["user_name"] = user_name.strip()
    if email is not None:
        if "@" not in email:
            fail("Please enter a valid email.")
        changes["email"] = email.strip()
    if linked_account is not None:
        changes["linked_account"] = linked_account.strip() or None

    if not changes:
        warn("Nothing to change. Pass --user-name, --email or --linked-account.")
        return

    profile = ProfileStore().update(profile_name, **changes)
    success(f'Profile "{profile.name}" updated.')
    info("Run `git-id use` again where it is applied to refresh git config.")


def _remove_profile_files(ssh: SshManager, profile: Profile) -> None:
    """Best effort: a failure leaves an orphaned alias block or key file."""
    try:
        ssh.remove_alias(profile.name)
    except (OSError, GitIdError) as e:
        warn(f"Could not remove SSH config entry for {profile.name}: {e}")
    try:
        ssh.delete_key_files(profile.name)
    except OSError as e:
        warn(f"Could not remove SSH key files for {profile.name}: {e}")


@cli.command()
@click.argument("profile_name", required=False)
@click.option("--all", "-a", "delete_all", is_flag=True, help="Delete all profiles.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@handle_errors
def delete(profile_name: str | None, delete_all: bool, yes: bool) -> None:
    """Delete a Git profile."""
    store = ProfileStore()
    ssh = SshManager()
    profiles = store.list()
    if not profiles:
        warn("No profiles to delete.")
        return

    if delete_all:
        if yes or click.confirm(f"  Delete ALL {len(profiles)} profiles?", default=False):
            for profile in profiles:
                _remove_profile_files(ssh, profile)
            store.delete_all()
            success("Deleted all profiles.")
        return

    profile = _pick(store, profile_name, "Select profile to delete", profiles)
    if yes or click.confirm(f'  Delete profile "{profile.name}"?', default=False):
        _remove_profile_files(ssh, profile)
        store.delete(profile.name)
        success(f'Profile "{profile.name}" deleted.')


@cli.command()
@click.argument("profile_name", required=False)
@handle_errors
def test(profile_name: str | None) -> None:
    """Test the SSH connection to GitHub for a profile."""
    store = ProfileStore()
    ssh_profiles = [p for p in store.list() if p.ssh_key_configured]
    if not ssh_profiles:
        warn("No profiles with SSH keys configured.")
        return

    profile = _pick(
        store,
        profile_name,
        "Select profile to test",
        ssh_profiles,
        not_found="not found or has no SSH key",
    )

    click.echo()
    info(f'Testing SSH connection for "{profile.name}"...')
    result = SshManager().test_connection(profile.name)
    if result.success:
        success(f"Successfully authenticated as: {result.username or profile.name}")
    else:
        fail(f"Connection failed: {result.error}")


@cli.command()
@click.argument("url")
@click.argument("directory", required=False)
@click.option("--profile", "-p", "profile_name", default=None, help="Profile to use.")
@handle_errors
def clone(url: str, directory: str | None, profile_name: str | None) -> None:
    """Clone a repository using a specific profile."""
    store = ProfileStore()
    if not store.list():
        warn("No profiles configured. Run `git-id add` first.")
        return

    profile = _pick(store, profile_name, "Select profile for cloning")

    args = ["clone", url] + ([directory] if directory else [])
    args = transform_args(args, profile)
    click.echo()
    info(f"URL: {args[1]}")

    cwd = Path.cwd()
    code = handle_clone(args, profile, cwd)
    if code != 0:
        sys.exit(code)

    target = clone_target_dir(args)
    if target:
        path = str((cwd / target).resolve())
        click.echo()
        info(styled("To start working:", fg="cyan"))
        info(f'  cd "{path}"' if " " in path else f"  cd {path}")
    click.echo()


@cli.command("shell-init")
@click.option("--remove", is_flag=True, help="Remove the git() function instead.")
@handle_errors
def shell_init(remove: bool) -> None:
    """Install the git() shell function that enables `git ... --profile`."""
    if remove:
        changed = shell.uninstall()
        if changed:
            for rc in changed:
                success(f"Removed git-id function from {rc}")
        else:
            info("No git-id shell function installed.")
        return

    changed = shell.install()
    if not changed:
        info("Shell already configured.")
        return
    success("Configured shell profile(s):")
    for rc in changed:
        info(f"  {rc}")
    click.echo()
    info("To activate the changes, run:")
    for rc in changed:
        info(f"  source {rc}")


cli.add_command(list_cmd, name="ls")
cli.add_command(use, name="switch")
cli.add_command(current, name="whoami")
cli.add_command(delete, name="rm")
