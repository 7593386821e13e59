"""Per-profile SSH keys and host aliases."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from git_id import blocks, config
from git_id.exceptions import ConnectivityTestError, KeyGenerationError

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
CONNECT_TIMEOUT = 30

_GREETING_RE = re.compile(r"Hi ([^!]+)!")


def key_file_name(profile_name: str) -> str:
    return "id_ed25519_" + re.sub(r"[^A-Za-z0-9_-]", "_", profile_name)


def key_path(profile_name: str, ssh_dir: Path | None = None) -> Path:
    return (ssh_dir or config.SSH_DIR) / key_file_name(profile_name)


def host_alias(profile_name: str) -> str:
    return f"github-{profile_name}"


@dataclass
class KeyPair:
    private_key_path: Path
    public_key_path: Path
    public_key: str


@dataclass
class ConnectionResult:
    """Outcome of ``ssh -T`` against a profile's host alias."""

    success: bool
    username: str | None = None
    error: str | None = None


def parse_greeting(output: str) -> ConnectionResult | None:
    """Recognize GitHub's auth greeting in ssh output, whatever the exit code."""
    match = _GREETING_RE.search(output)
    if match:
        return ConnectionResult(success=True, username=match.group(1))
    if "successfully authenticated" in output:
        return ConnectionResult(success=True)
    return None


class SshManager:
    """Manages keys and ``Host`` alias blocks under an ssh directory."""

    def __init__(self, ssh_dir: Path | None = None):
        self.ssh_dir = ssh_dir or config.SSH_DIR
        self.config_file = self.ssh_dir / "config"

    def ensure_ssh_dir(self) -> None:
        self.ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    def key_path(self, profile_name: str) -> Path:
        return key_path(profile_name, self.ssh_dir)

    def public_key_path(self, profile_name: str) -> Path:
        path = self.key_path(profile_name)
        return path.with_name(path.name + ".pub")

    def generate_key(self, email: str, profile_name: str) -> KeyPair:
        """Create a fresh ed25519 key pair for the profile (no passphrase).

        Existing key files for the profile are replaced.
        """
        self.ensure_ssh_dir()
        private = self.key_path(profile_name)
        public = self.public_key_path(profile_name)
        self.delete_key_files(profile_name)

        cmd = ["ssh-keygen", "-t", "ed25519", "-C", email, "-f", str(private), "-N", ""]
        logger.debug("Running %s", cmd)
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise KeyGenerationError("ssh-keygen not found on PATH") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
            raise KeyGenerationError(f"Failed to generate SSH key: {detail}") from e

        if os.name != "nt":
            os.chmod(private, 0o600)

        try:
            public_key = public.read_text().strip()
        except OSError as e:
            raise KeyGenerationError(f"Public key not written: {public}") from e

        return KeyPair(private_key_path=private, public_key_path=public, public_key=public_key)

    def delete_key_files(self, profile_name: str) -> None:
        for path in (self.key_path(profile_name), self.public_key_path(profile_name)):
            try:
                path.unlink()
                logger.debug("Removed %s", path)
            except FileNotFoundError:
                pass

    def _identity_file_entry(self, profile_name: str) -> str:
        path = self.key_path(profile_name)
        home = Path.home()
        try:
            entry = "~/" + path.relative_to(home).as_posix()
        except ValueError:
            entry = path.as_posix()
        if " " in entry:
            entry = f'"{entry}"'
        return entry

    def alias_block(self, profile_name: str) -> str:
        return "\n".join(
            [
                f"Host {host_alias(profile_name)}",
                f"    HostName {GITHUB_HOST}",
                "    User git",
                f"    IdentityFile {self._identity_file_entry(profile_name)}",
                "    IdentitiesOnly yes",
            ]
        )

    def configure_alias(self, profile_name: str) -> None:
        """Add or replace the profile's Host block in the ssh config."""
        self.ensure_ssh_dir()
        body = self.alias_block(profile_name)
        blocks.update_file(
            self.config_file,
            lambda text: blocks.upsert_block(text, profile_name, body),
            mode=0o600,
        )

    def remove_alias(self, profile_name: str) -> bool:
        if not self.config_file.exists():
            return False
        return blocks.update_file(
            self.config_file,
            lambda text: blocks.remove_block(text, profile_name),
            mode=0o600,
        )

    def has_alias(self, profile_name: str) -> bool:
        try:
            text = self.config_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        return blocks.read_block(text, profile_name) is not None

    def test_connection(self, profile_name: str) -> ConnectionResult:
        """Run ``ssh -T`` against the alias and interpret the output.

        GitHub answers a successful auth with a greeting and exit code 1, so
        success is read from the combined output rather than the exit code.
        """
        alias = host_alias(profile_name)
        cmd = ["ssh", "-T", f"git@{alias}", "-o", "StrictHostKeyChecking=accept-new"]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=CONNECT_TIMEOUT,
            )
        except FileNotFoundError as e:
            raise ConnectivityTestError("ssh not found on PATH") from e
        except subprocess.TimeoutExpired:
            return ConnectionResult(success=False, error=f"Timed out connecting to {alias}")

        output = (result.stdout or "") + (result.stderr or "")
        parsed = parse_greeting(output)
        if parsed:
            return parsed
        return ConnectionResult(
            success=False,
            error=output.strip() or f"ssh exited with code {result.returncode}",
        )

    def add_to_agent(self, profile_name: str) -> bool:
        """Best effort ``ssh-add``; False when no agent is available."""
        try:
            result = subprocess.run(
                ["ssh-add", str(self.key_path(profile_name))],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logger.debug("ssh-add unavailable: %s", e)
            return False
        if result.returncode != 0:
            logger.debug("ssh-add failed: %s", result.stderr.strip())
            return False
        return True
