"""Install the ``git()`` shell function that routes --profile to gitp."""

from __future__ import annotations

import logging
from pathlib import Path

from git_id import blocks

logger = logging.getLogger(__name__)

BLOCK_KEY = "shell"

RC_FILES = (".bashrc", ".bash_profile", ".zshrc", ".profile")

SHELL_FUNCTION = """\
git() {
    if [[ " $* " == *" --profile "* ]] || [[ " $* " == *" --profile="* ]] || [[ " $* " == *" -p "* ]]; then
        gitp "$@"
    else
        command git "$@"
    fi
}"""


def rc_files(home: Path | None = None) -> list[Path]:
    """Existing shell rc files under home; ~/.bashrc if there are none."""
    home = home or Path.home()
    found = [home / name for name in RC_FILES if (home / name).exists()]
    return found or [home / ".bashrc"]


def install(home: Path | None = None) -> list[Path]:
    """Add or refresh the function block. Returns the files that changed."""
    changed = []
    for rc in rc_files(home):
        if blocks.update_file(rc, lambda text: blocks.upsert_block(text, BLOCK_KEY, SHELL_FUNCTION)):
            changed.append(rc)
    return changed


def uninstall(home: Path | None = None) -> list[Path]:
    changed = []
    home = home or Path.home()
    for name in RC_FILES:
        rc = home / name
        if rc.exists() and blocks.update_file(rc, lambda text: blocks.remove_block(text, BLOCK_KEY)):
            changed.append(rc)
    return changed
