"""Lazy directory traversal."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


def iter_files(root: str | os.PathLike[str]) -> Iterator[str]:
    """Yield every regular file under *root*, depth first.

    Uses an explicit stack, so tree depth is bounded only by memory.
    Symbolic links are not followed.  Unreadable directories are logged
    and skipped.  A *root* that is itself a file is yielded as is.
    """
    top = os.fspath(root)
    if os.path.isfile(top):
        yield top
        return

    stack = [top]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", current, exc)
            continue
        subdirs: list[str] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                elif entry.is_file(follow_symlinks=False):
                    yield entry.path
            except OSError:
                logger.debug("Could not stat %s", entry.path)
        # Reversed so the first subdirectory is visited first
        stack.extend(reversed(subdirs))
