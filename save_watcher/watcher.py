"""File system watcher for Save Watcher.

Uses the watchdog library to monitor a source folder (and its
sub-folders) for modified files.  Changes are accumulated, debounced and
then backed up in one pass per file.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
from collections.abc import Callable
from typing import Any

from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from save_watcher.accumulator import ChangeAccumulator
from save_watcher.config import (
    DEFAULT_FILE_EVENT_DELAY_MS,
    DEFAULT_FILTER,
    DEFAULT_IDLE_LOOP_DELAY_MS,
    WatcherConfig,
)
from save_watcher.copier import BackupWriter, CopyRecord, CopyStats
from save_watcher.scheduler import DebounceScheduler

logger = logging.getLogger(__name__)

_OBSERVER_JOIN_TIMEOUT = 5


class SaveFileHandler(FileSystemEventHandler):
    """Watchdog handler that forwards write events matching the filter."""

    def __init__(self, on_change: Callable[[str], object], pattern: str = DEFAULT_FILTER):
        super().__init__()
        self._on_change = on_change
        self._pattern = pattern

    def matches(self, path: str) -> bool:
        """Return whether the base name of *path* matches the filter.

        Case sensitivity follows the platform (``os.path.normcase``).
        """
        return fnmatch.fnmatch(os.path.basename(path), self._pattern)

    def on_modified(self, event: FileModifiedEvent) -> None:  # type: ignore[override]
        """Handle a modification event.

        Directory events are passed on as well; the accumulator drops them.
        """
        path = os.fsdecode(event.src_path)
        if self.matches(path):
            self._on_change(path)


class SaveWatcher:
    """Backs up changed files from a source tree into a target folder.

    Usage:
        watcher = SaveWatcher(source, target)
        threading.Thread(target=watcher.start).start()
        ...
        watcher.stop()

    ``start()`` blocks until ``stop()`` is called from another thread.
    """

    def __init__(
        self,
        source_path: str,
        target_path: str,
        file_event_delay: int = DEFAULT_FILE_EVENT_DELAY_MS,
        idle_loop_delay: int = DEFAULT_IDLE_LOOP_DELAY_MS,
        filter: str = DEFAULT_FILTER,
        on_copy_complete: Callable[[CopyRecord], None] | None = None,
    ):
        """Validate the arguments and build the watcher (not started)."""
        config = WatcherConfig(
            source_path=source_path,
            target_path=target_path,
            filter=filter,
            file_event_delay=file_event_delay,
            idle_loop_delay=idle_loop_delay,
        )
        self._config = config
        self._accumulator = ChangeAccumulator()
        self._writer = BackupWriter(config.target_path, on_copy_complete)
        self._scheduler = DebounceScheduler(self.flush, config.file_event_delay)
        self._handler = SaveFileHandler(self.notify, config.filter)
        self._observer: Any | None = None
        self._running = False
        self._state_lock = threading.Lock()
        self._wake = threading.Event()
        self._started = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: WatcherConfig,
        on_copy_complete: Callable[[CopyRecord], None] | None = None,
    ) -> SaveWatcher:
        """Build a watcher from the fields of *config*."""
        return cls(
            config.source_path,
            config.target_path,
            file_event_delay=config.file_event_delay,
            idle_loop_delay=config.idle_loop_delay,
            filter=config.filter,
            on_copy_complete=on_copy_complete,
        )

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching and block until :meth:`stop` is called."""
        with self._state_lock:
            if self._running:
                logger.warning("Watcher is already running.")
                return
            observer = Observer()
            observer.schedule(self._handler, self._config.source_path, recursive=True)
            self._running = True
            self._wake.clear()
            self._scheduler.activate()
            try:
                observer.start()
            except Exception:
                self._running = False
                self._scheduler.cancel()
                logger.exception("Could not start watching %s", self._config.source_path)
                raise
            self._observer = observer
            self._started.set()

        logger.info(
            "Watching '%s' -> '%s' (filter=%s, delay=%dms)",
            self._config.source_path,
            self._config.target_path,
            self._config.filter,
            self._config.file_event_delay,
        )

        # Zero means wait for stop only
        idle = self._config.idle_loop_delay_seconds or None
        while self.is_running:
            self._wake.wait(timeout=idle)

    def stop(self) -> None:
        """Stop watching and discard changes that were not backed up yet."""
        with self._state_lock:
            if not self._running:
                return
            observer = self._observer
            self._observer = None
            self._started.clear()
            # Deregister first so no notification can rearm the timer
            if observer is not None:
                observer.stop()
                observer.join(timeout=_OBSERVER_JOIN_TIMEOUT)
            self._scheduler.cancel()
            self._accumulator.clear()
            self._running = False
            self._wake.set()
        logger.info("Watcher stopped.")

    def wait_until_running(self, timeout: float | None = None) -> bool:
        """Block until :meth:`start` has begun watching."""
        return self._started.wait(timeout)

    # ---- notification / flush ----

    def notify(self, path: str) -> None:
        """Record a changed *path* and restart the debounce window."""
        if not self.is_running:
            return
        if self._accumulator.record(path):
            self._scheduler.rearm()

    def flush(self) -> list[CopyRecord]:
        """Back up every pending file now."""
        paths = self._accumulator.drain_all()
        if not paths:
            return []
        logger.debug("Flushing %d file(s).", len(paths))
        return self._writer.copy_all(paths)

    # ---- status ----

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._running

    @property
    def config(self) -> WatcherConfig:
        return self._config

    @property
    def pending_count(self) -> int:
        """Return the number of files awaiting backup."""
        return self._accumulator.pending_count

    @property
    def pending_files(self) -> list[str]:
        return self._accumulator.pending_files

    @property
    def stats(self) -> CopyStats:
        return self._writer.stats
