"""Configuration for Save Watcher.

``WatcherConfig`` is the immutable, validated record a watcher is built
from.  ``Settings`` stores user defaults in a JSON file in the
platform-appropriate application data directory.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from save_watcher.platform_utils import get_config_dir as _platform_config_dir

logger = logging.getLogger(__name__)

DEFAULT_FILE_EVENT_DELAY_MS = 200
DEFAULT_IDLE_LOOP_DELAY_MS = 2
DEFAULT_FILTER = "*"

DEFAULT_SETTINGS: dict[str, Any] = {
    "file_event_delay_ms": DEFAULT_FILE_EVENT_DELAY_MS,
    "idle_loop_delay_ms": DEFAULT_IDLE_LOOP_DELAY_MS,
    "filter": DEFAULT_FILTER,  # glob matched against file names
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


class ConfigError(ValueError):
    """Raised when a watcher cannot be built from the given settings."""


class MissingDirectoryError(ConfigError, FileNotFoundError):
    """Raised when the source or target directory does not exist."""


def get_settings_path() -> Path:
    """Return the path to the settings file."""
    return _platform_config_dir() / "settings.json"


@dataclass(frozen=True)
class WatcherConfig:
    """Validated construction parameters of a :class:`SaveWatcher`.

    Attributes
    ----------
    source_path : str
        Directory tree to watch.  Must exist and differ from the target.
    target_path : str
        Directory receiving backups.  Must exist.
    filter : str
        Glob restricting which file names raise notifications.
    file_event_delay : int
        Trailing-edge debounce window in milliseconds.
    idle_loop_delay : int
        Wake granularity of the watch loop in milliseconds.
    """

    source_path: str
    target_path: str
    filter: str = DEFAULT_FILTER
    file_event_delay: int = DEFAULT_FILE_EVENT_DELAY_MS
    idle_loop_delay: int = DEFAULT_IDLE_LOOP_DELAY_MS

    def __post_init__(self) -> None:
        if self.filter is None:
            raise ConfigError("A file name filter is required.")
        if not isinstance(self.filter, str):
            raise ConfigError(f"Filter must be a string, not {type(self.filter).__name__}.")
        if self.file_event_delay < 0 or self.idle_loop_delay < 0:
            raise ConfigError("Delays cannot be negative.")

        source = Path(os.fspath(self.source_path)).absolute()
        target = Path(os.fspath(self.target_path)).absolute()

        if source.resolve() == target.resolve():
            raise ConfigError("Source and target directories cannot be the same.")
        if not source.is_dir():
            raise MissingDirectoryError(f"{source} is not existing.")
        if not target.is_dir():
            raise MissingDirectoryError(f"{target} is not existing.")

        if target.resolve().is_relative_to(source.resolve()):
            logger.warning(
                "Target %s is inside the watched tree %s; backups will be watched too.",
                target,
                source,
            )

        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "source_path", str(source))
        object.__setattr__(self, "target_path", str(target))

    @property
    def file_event_delay_seconds(self) -> float:
        return self.file_event_delay / 1000.0

    @property
    def idle_loop_delay_seconds(self) -> float:
        return self.idle_loop_delay / 1000.0


# Lower bound of each integer setting, as applied by the Settings setters
_INT_MINIMUMS: dict[str, int] = {
    "file_event_delay_ms": 0,
    "idle_loop_delay_ms": 0,
    "max_log_size_mb": 1,
    "log_backup_count": 0,
}


def _checked(stored: dict[str, Any]) -> dict[str, Any]:
    """Return *stored* with bad values dropped and integers clamped.

    A dropped key falls back to its default; each one is logged.
    """
    checked: dict[str, Any] = {}
    for key, value in stored.items():
        if key in _INT_MINIMUMS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.warning("Ignoring setting %s=%r (not a number); using default.", key, value)
                continue
            checked[key] = max(_INT_MINIMUMS[key], int(value))
        elif key in ("filter", "log_level"):
            if not isinstance(value, str):
                logger.warning("Ignoring setting %s=%r (not a string); using default.", key, value)
                continue
            checked[key] = value.upper() if key == "log_level" else value
        else:
            checked[key] = value
    return checked


class Settings:
    """User defaults backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load settings from *path*, falling back to the platform default."""
        self._path = path or get_settings_path()
        self._data: dict[str, Any] = dict(DEFAULT_SETTINGS)
        self.load()

    # ---- persistence ----

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load settings from disk, applying defaults for missing keys."""
        if not self._path.exists():
            self._data = dict(DEFAULT_SETTINGS)
            logger.debug("No settings file at %s; using defaults.", self._path)
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
            if not isinstance(stored, dict):
                raise ValueError("settings file must hold a JSON object")
            # Merge stored values over defaults so new keys get defaults
            self._data = {**DEFAULT_SETTINGS, **_checked(stored)}
            logger.info("Settings loaded from %s", self._path)
        except (ValueError, OSError) as exc:
            logger.warning("Could not read settings (%s); using defaults.", exc)
            self._data = dict(DEFAULT_SETTINGS)

    def save(self) -> None:
        """Persist the current settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Settings saved.")
        except OSError as exc:
            logger.error("Failed to save settings: %s", exc)

    # ---- accessors ----

    @property
    def file_event_delay(self) -> int:
        """Return the debounce window in milliseconds."""
        return int(self._data["file_event_delay_ms"])

    @file_event_delay.setter
    def file_event_delay(self, value: int) -> None:
        """Set the debounce window (minimum 0 ms)."""
        self._data["file_event_delay_ms"] = max(0, int(value))

    @property
    def idle_loop_delay(self) -> int:
        """Return the idle-loop wake granularity in milliseconds."""
        return int(self._data["idle_loop_delay_ms"])

    @idle_loop_delay.setter
    def idle_loop_delay(self, value: int) -> None:
        """Set the idle-loop wake granularity (minimum 0 ms)."""
        self._data["idle_loop_delay_ms"] = max(0, int(value))

    @property
    def filter(self) -> str:
        """Return the file name glob."""
        return self._data.get("filter", DEFAULT_FILTER)

    @filter.setter
    def filter(self, value: str) -> None:
        """Set the file name glob; stored exactly as given."""
        self._data["filter"] = value

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value.upper()

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    def watcher_config(self, source_path: str, target_path: str) -> WatcherConfig:
        """Build a validated :class:`WatcherConfig` from these settings."""
        return WatcherConfig(
            source_path=source_path,
            target_path=target_path,
            filter=self.filter,
            file_event_delay=self.file_event_delay,
            idle_loop_delay=self.idle_loop_delay,
        )
