"""Idempotent editing of marker-delimited blocks inside text files.

A managed block looks like::

    # Git-ID - work
    ...body...
    # End Git-ID - work

The pure functions here take and return whole file contents. ``update_file``
wraps them in a locked read-modify-write on a real path.

A start marker with no end marker after it (usually a hand edit gone wrong)
is left where it is, along with everything after it. Blocks are matched from
their end marker back to the nearest preceding start marker, so such a
dangling marker never swallows user content on later edits.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

from git_id.locking import file_lock

logger = logging.getLogger(__name__)

START_PREFIX = "# Git-ID"
END_PREFIX = "# End Git-ID"


def markers(key: str) -> tuple[str, str]:
    return f"{START_PREFIX} - {key}", f"{END_PREFIX} - {key}"


def render_block(key: str, body: str) -> str:
    """Wrap body in the start/end markers for key (no trailing newline)."""
    start, end = markers(key)
    body = body.strip("\n")
    if body:
        return f"{start}\n{body}\n{end}"
    return f"{start}\n{end}"


def _find_marker(text: str, marker: str, pos: int = 0) -> int:
    """Find marker at or after pos where it is followed by a line break or EOF."""
    while True:
        idx = text.find(marker, pos)
        if idx == -1:
            return -1
        after = idx + len(marker)
        if after == len(text) or text[after] in "\r\n":
            return idx
        pos = idx + 1


def _rfind_marker(text: str, marker: str, end: int) -> int:
    pos = end
    while True:
        idx = text.rfind(marker, 0, pos)
        if idx == -1:
            return -1
        after = idx + len(marker)
        if after == len(text) or text[after] in "\r\n":
            return idx
        pos = idx + len(marker) - 1


def _locate(text: str, key: str, pos: int = 0) -> tuple[int, int] | None:
    """Return (start, end) offsets of the first complete block at or after pos.

    ``end`` points just past the end marker.
    """
    start_marker, end_marker = markers(key)
    while True:
        end_idx = _find_marker(text, end_marker, pos)
        if end_idx == -1:
            return None
        start_idx = _rfind_marker(text, start_marker, end_idx)
        if start_idx != -1 and start_idx >= pos:
            return start_idx, end_idx + len(end_marker)
        # Stray end marker without a start: skip it.
        pos = end_idx + len(end_marker)


def _join(before: str, after: str) -> str:
    before = before.rstrip("\r\n")
    after = after.lstrip("\r\n")
    if before and after:
        return f"{before}\n\n{after}"
    return before + after


def _strip_blocks(contents: str, key: str) -> tuple[str, bool]:
    removed = False
    pos = 0
    while True:
        span = _locate(contents, key, pos)
        if span is None:
            break
        start, end = span
        before = contents[:start]
        contents = _join(before, contents[end:])
        pos = len(before.rstrip("\r\n"))
        removed = True
    return contents, removed


def has_dangling_start(contents: str, key: str) -> bool:
    """True if a start marker for key is not closed by a later end marker."""
    stripped, _ = _strip_blocks(contents, key)
    return _find_marker(stripped, markers(key)[0]) != -1


def read_block(contents: str, key: str) -> str | None:
    """Return the body of the block for key, or None if there is none."""
    span = _locate(contents, key)
    if span is None:
        return None
    start_marker, end_marker = markers(key)
    start, end = span
    inner = contents[start + len(start_marker) : end - len(end_marker)]
    return inner.strip("\r\n")


def upsert_block(contents: str, key: str, body: str) -> str:
    """Replace any block for key with a fresh one appended at the end."""
    stripped, _ = _strip_blocks(contents, key)
    if has_dangling_start(stripped, key):
        logger.warning(
            "Unterminated '%s' marker left in place; appending a new block",
            markers(key)[0],
        )
    stripped = stripped.rstrip()
    block = render_block(key, body)
    if stripped:
        return f"{stripped}\n\n{block}\n"
    return f"{block}\n"


def remove_block(contents: str, key: str) -> str:
    """Remove the block for key; trailing whitespace becomes one newline."""
    stripped, removed = _strip_blocks(contents, key)
    if not removed:
        return contents
    stripped = stripped.rstrip()
    return f"{stripped}\n" if stripped else ""


def update_file(
    path: Path,
    transform: Callable[[str], str],
    mode: int | None = None,
) -> bool:
    """Apply transform to the file's contents under the file lock.

    A missing file reads as empty. The file is only written when the contents
    change. Returns True if it was written.
    """
    with file_lock(path):
        try:
            original = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            original = ""
        updated = transform(original)
        if updated == original:
            logger.debug("%s unchanged", path)
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(updated, encoding="utf-8")
        if mode is not None and os.name != "nt":
            os.chmod(path, mode)
        logger.debug("Wrote %s", path)
        return True
