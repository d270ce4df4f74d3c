"""Entry point for Save Watcher.

Usage:
    python -m save_watcher SOURCE TARGET [options]

Backs up files changed under SOURCE into TARGET until Enter is pressed.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from save_watcher import __app_name__, __version__


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="save-watcher",
        description="Back up changed files into a folder with sequence-numbered names.",
    )
    p.add_argument("source", help="Directory tree to watch")
    p.add_argument("target", help="Directory receiving backups")
    p.add_argument("--delay", type=int, metavar="MS", help="Debounce window in milliseconds (default 200)")
    p.add_argument("--idle-delay", type=int, metavar="MS", help="Idle-loop wake interval in milliseconds (default 2)")
    p.add_argument("--filter", metavar="GLOB", help="Only back up file names matching GLOB (default *)")
    p.add_argument("--config", type=Path, metavar="PATH", help="Settings JSON file")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper)
    p.add_argument("--log-file", type=Path, metavar="PATH", help="Log file (default: app data folder)")
    p.add_argument("--version", action="version", version=f"{__app_name__} {__version__}")
    return p


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, build the watcher and run it until stopped."""
    from save_watcher.app import App
    from save_watcher.config import ConfigError, Settings

    args = build_parser().parse_args(argv)

    settings = Settings(args.config)
    if args.delay is not None:
        settings.file_event_delay = args.delay
    if args.idle_delay is not None:
        settings.idle_loop_delay = args.idle_delay
    if args.filter is not None:
        settings.filter = args.filter
    if args.log_level:
        settings.log_level = args.log_level

    try:
        config = settings.watcher_config(args.source, args.target)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    return App(settings, config, log_file=args.log_file).run()


if __name__ == "__main__":
    sys.exit(main())
