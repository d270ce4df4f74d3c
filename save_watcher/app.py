"""
Console application controller for Save Watcher.

Ties together settings, logging and the watcher: runs the watcher on a
background thread until the user presses Enter (or the process receives
SIGINT/SIGTERM), then stops it and prints a summary.
"""

from __future__ import annotations

import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path

from save_watcher import __app_name__, __version__
from save_watcher.config import Settings, WatcherConfig
from save_watcher.platform_utils import get_log_path
from save_watcher.watcher import SaveWatcher

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_START_TIMEOUT = 10


class App:
    """Runs one :class:`SaveWatcher` for the lifetime of the process."""

    def __init__(self, settings: Settings, config: WatcherConfig, log_file: Path | None = None):
        self.settings = settings
        self.watcher = SaveWatcher.from_config(config)
        self._log_file = log_file
        self._stop_requested = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Watch until stopped; return the process exit status."""
        self.setup_logging()
        logger.info("%s %s starting.", __app_name__, __version__)

        cfg = self.watcher.config
        print("Backing up files until Enter is pressed...")
        print(f"from: {cfg.source_path}")
        print(f"to: {cfg.target_path}")

        # Installed before the worker starts
        self._install_signal_handlers()
        worker = threading.Thread(target=self.watcher.start, daemon=True, name="SaveWatcher")
        worker.start()
        if not self.watcher.wait_until_running(_START_TIMEOUT):
            logger.error("Watcher did not start within %ds.", _START_TIMEOUT)
            self.watcher.stop()
            return 1

        threading.Thread(target=self._wait_for_enter, daemon=True, name="ConsoleInput").start()
        try:
            self._stop_requested.wait()
        except KeyboardInterrupt:
            pass

        self.watcher.stop()
        worker.join(timeout=_START_TIMEOUT)
        stats = self.watcher.stats
        print(f"{stats.total_copied} backed up, {stats.total_failed} failed.")
        logger.info("Backed up %d file(s), %d bytes in total.", stats.total_copied, stats.total_bytes)
        return 0

    def request_stop(self) -> None:
        self._stop_requested.set()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _wait_for_enter(self) -> None:
        try:
            sys.stdin.readline()
        except (OSError, ValueError):
            logger.debug("Console input unavailable.", exc_info=True)
        self.request_stop()

    def _install_signal_handlers(self) -> None:
        def _handler(sig, frame):
            self.request_stop()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

    def setup_logging(self) -> None:
        """Configure rotating file log and stderr handler."""
        log_path = self._log_file or get_log_path()
        level = getattr(logging, self.settings.log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        fmt = logging.Formatter(_LOG_FORMAT)

        # Rotating file handler
        max_bytes = self.settings.max_log_size_mb * 1024 * 1024
        fh = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=max_bytes,
            backupCount=self.settings.log_backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)
        root_logger.addHandler(sh)
