"""Advisory lock files around read-modify-write cycles."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from git_id.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
STALE_AFTER = 120.0
POLL_INTERVAL = 0.05


def lock_path_for(path: Path) -> Path:
    return path.with_name(path.name + ".lock")


@contextmanager
def file_lock(
    path: Path,
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = POLL_INTERVAL,
    stale_after: float = STALE_AFTER,
) -> Iterator[Path]:
    """Hold ``<path>.lock`` for the duration of the block.

    The lock file is created exclusively; other git-id processes wait up to
    ``timeout`` seconds for it. A lock file older than ``stale_after`` seconds is
    left over from a killed process and is removed.
    """
    lock = lock_path_for(path)
    lock.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout

    while True:
        try:
            fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        except FileExistsError:
            if _is_stale(lock, stale_after):
                logger.warning("Removing stale lock %s", lock)
                _unlink(lock)
                continue
            if time.monotonic() >= deadline:
                raise LockTimeoutError(
                    f"Timed out waiting for {lock}; remove it if no other "
                    "git-id process is running"
                )
            time.sleep(poll_interval)
            continue
        break

    try:
        os.write(fd, str(os.getpid()).encode())
        os.close(fd)
        logger.debug("Acquired %s", lock)
        yield lock
    finally:
        _unlink(lock)
        logger.debug("Released %s", lock)


def _is_stale(lock: Path, max_age: float) -> bool:
    try:
        age = time.time() - lock.stat().st_mtime
    except FileNotFoundError:
        return False
    return age > max_age


def _unlink(lock: Path) -> None:
    try:
        lock.unlink()
    except FileNotFoundError:
        pass
