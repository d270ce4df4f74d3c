"""
Backup writer for Save Watcher.

Copies changed files into the target folder under an increasing,
zero-padded sequence prefix (``0000_name.ext``, ``0001_name.ext`` ...).
Copies never overwrite: an existing destination makes the copy fail.
Each file in a batch is handled independently, so one failure never
stops the rest of the batch.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 4
_HISTORY_LIMIT = 1000


@dataclass
class CopyRecord:
    """Record of a single backup attempt."""
    source: str
    destination: str
    sequence: int = -1
    size_bytes: int = 0
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    error: str = ""


@dataclass
class CopyStats:
    """Aggregated backup statistics."""
    total_copied: int = 0
    total_failed: int = 0
    total_bytes: int = 0
    history: list[CopyRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, rec: CopyRecord) -> None:
        with self._lock:
            self.history.append(rec)
            if rec.success:
                self.total_copied += 1
                self.total_bytes += rec.size_bytes
            else:
                self.total_failed += 1
            if len(self.history) > _HISTORY_LIMIT:
                self.history = self.history[-_HISTORY_LIMIT:]


class BackupWriter:
    """
    Copies files into *target_root* with a sequence-number prefix.

    Parameters
    ----------
    target_root : str
        The folder receiving backups.
    on_copy_complete : callable, optional
        Callback invoked after each attempt with the CopyRecord.
    padding : int
        Minimum number of digits of the sequence prefix.  Numbers that
        need more digits are written in full.
    """

    def __init__(
        self,
        target_root: str | os.PathLike[str],
        on_copy_complete: Callable[[CopyRecord], None] | None = None,
        padding: int = DEFAULT_PADDING,
    ):
        self.target_root = Path(target_root)
        self._on_copy_complete = on_copy_complete
        self._padding = padding
        self._sequence = 0
        self._lock = threading.Lock()
        self.stats = CopyStats()

    @property
    def sequence(self) -> int:
        """Return the number the next successful backup will carry."""
        with self._lock:
            return self._sequence

    def destination_for(self, source_path: str | os.PathLike[str], sequence: int | None = None) -> Path:
        """Compute the backup path of *source_path* for *sequence*."""
        if sequence is None:
            sequence = self.sequence
        name = os.path.basename(os.fspath(source_path))
        return self.target_root / f"{sequence:0{self._padding}d}_{name}"

    def copy_all(self, paths: Iterable[str | os.PathLike[str]]) -> list[CopyRecord]:
        """Back up every path in order on the calling thread."""
        return [self.copy_file(path) for path in paths]

    def copy_file(self, source_path: str | os.PathLike[str]) -> CopyRecord:
        """Back up a single file.  Errors are logged, never raised."""
        rec = CopyRecord(source=os.fspath(source_path), destination="")

        # Held for the whole copy so sequence numbers follow copy order
        with self._lock:
            rec.sequence = self._sequence
            dest = self.destination_for(source_path, rec.sequence)
            rec.destination = str(dest)
            rec.started = time.time()
            try:
                rec.size_bytes = _copy_exclusive(Path(rec.source), dest)
                rec.success = True
                self._sequence += 1
            except OSError as exc:
                rec.error = f"{type(exc).__name__} occurred: {exc}"
            except Exception as exc:
                rec.error = f"{type(exc).__name__} occurred: {exc}"
                logger.exception("Unexpected error backing up %s", rec.source)
            rec.finished = time.time()

        if rec.success:
            logger.info("Backed up: %s", rec.destination)
        else:
            rec.sequence = -1
            logger.error("%s", rec.error)

        self.stats.record(rec)
        if self._on_copy_complete:
            try:
                self._on_copy_complete(rec)
            except Exception:
                logger.exception("Error in on_copy_complete callback")
        return rec


def _copy_exclusive(source: Path, dest: Path) -> int:
    """Copy *source* to *dest*, failing if *dest* exists.

    Returns the number of bytes copied.  A partially written destination
    is removed before the error propagates.
    """
    with open(source, "rb") as fsrc:
        # "x" refuses to open an existing file
        with open(dest, "xb") as fdst:
            try:
                shutil.copyfileobj(fsrc, fdst)
            except BaseException:
                fdst.close()
                dest.unlink(missing_ok=True)
                raise
            size = fdst.tell()
    try:
        shutil.copystat(source, dest)
    except OSError as exc:
        logger.debug("Could not copy metadata to %s: %s", dest, exc)
    return size
