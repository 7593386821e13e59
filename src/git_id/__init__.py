"""git-id: manage multiple git identities with per-profile SSH keys."""

__version__ = "1.0.0"
