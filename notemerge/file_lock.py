"""Per-file exclusive locks for read-merge-write cycles.

Each markdown path maps to a lock file under ``<library>/.locks`` which is
locked with ``fcntl.flock``. Acquisition polls until the configured timeout
so a stuck writer surfaces as ``LOCK_TIMEOUT`` rather than a hung request.
"""

from __future__ import annotations

import fcntl
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from notemerge.config import DEFAULT_LOCK_TIMEOUT
from notemerge.errors import McpError
from notemerge.log import get_logger

logger = get_logger(__name__)

LOCK_POLL_INTERVAL = 0.05
LOCK_DIRNAME = ".locks"


def lock_path_for(library_root: Path, relative_path: Path) -> Path:
    """Return the lock file for a note, mirroring its directory under ``.locks``."""
    lock_dir = library_root / LOCK_DIRNAME / relative_path.parent
    return lock_dir / f"{relative_path.name}.lock"


@contextmanager
def markdown_file_lock(
    library_root: Path,
    relative_path: Path,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Iterator[None]:
    lock_path = lock_path_for(library_root, relative_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    logger.warning(
                        "lock timeout on %s after %.1fs", relative_path, timeout
                    )
                    raise McpError(
                        "LOCK_TIMEOUT",
                        "Markdown file is locked by another writer.",
                        {
                            "path": relative_path.as_posix(),
                            "timeoutSeconds": timeout,
                        },
                    )
                time.sleep(LOCK_POLL_INTERVAL)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
