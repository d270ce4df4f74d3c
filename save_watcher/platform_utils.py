"""
Cross-platform utilities for Save Watcher.

Centralises OS detection and the per-platform application data
locations so the config and CLI modules share one canonical set of
helpers.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_APP_DIR_NAME = "SaveWatcher"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory (not created).

    - Windows : ``%APPDATA%\\SaveWatcher``
    - macOS   : ``~/Library/Application Support/SaveWatcher``
    - Linux   : ``$XDG_CONFIG_HOME/SaveWatcher`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(base) / _APP_DIR_NAME


def get_log_path() -> Path:
    """Return the path to the log file, creating its directory if needed."""
    log_dir = get_config_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "save_watcher.log"
