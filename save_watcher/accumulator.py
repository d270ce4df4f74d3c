"""Pending-change accumulator for Save Watcher.

Collects the paths reported by the file system watcher between two
flushes.  Paths are kept in arrival order and each path is held at most
once, so a burst of notifications for one file becomes a single backup.
"""

from __future__ import annotations

import logging
import os
import stat
import threading

logger = logging.getLogger(__name__)


class ChangeAccumulator:
    """Thread-safe, insertion-ordered set of files awaiting backup."""

    def __init__(self) -> None:
        # dict keys keep insertion order and reject duplicates
        self._pending: dict[str, None] = {}
        self._lock = threading.Lock()

    def record(self, path: str | os.PathLike[str]) -> bool:
        """Register *path* as changed.

        Returns True when the path is a backup candidate (newly added or
        already pending), False when it was skipped because it is a
        directory or its attributes could not be read.  Never raises for
        I/O reasons.
        """
        full_path = os.path.abspath(os.fspath(path))
        try:
            mode = os.stat(full_path).st_mode
        except (OSError, ValueError) as exc:
            logger.debug("Could not inspect %s (%s); skipping", full_path, exc)
            return False
        if stat.S_ISDIR(mode):
            return False

        with self._lock:
            if full_path not in self._pending:
                self._pending[full_path] = None
                logger.debug("Recorded change: %s", full_path)
        return True

    def drain_all(self) -> list[str]:
        """Return every pending path in arrival order and empty the set."""
        with self._lock:
            drained = list(self._pending)
            self._pending.clear()
        return drained

    def clear(self) -> None:
        """Discard every pending path without returning it."""
        with self._lock:
            dropped = len(self._pending)
            self._pending.clear()
        if dropped:
            logger.info("Discarded %d pending change(s).", dropped)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def pending_files(self) -> list[str]:
        with self._lock:
            return list(self._pending)
