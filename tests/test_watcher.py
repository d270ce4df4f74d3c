import os
import threading
import time
from pathlib import Path
from unittest import mock

import pytest

from save_watcher.config import ConfigError, WatcherConfig
from save_watcher.watcher import SaveFileHandler, SaveWatcher


@pytest.fixture
def run_watcher():
    """Start watchers on background threads and stop them afterwards."""
    started = []

    def _run(watcher: SaveWatcher) -> threading.Thread:
        thread = threading.Thread(target=watcher.start, daemon=True)
        thread.start()
        assert watcher.wait_until_running(5)
        started.append((watcher, thread))
        return thread

    yield _run

    for watcher, thread in started:
        watcher.stop()
        thread.join(5)


def _names(directory: Path) -> list[str]:
    return sorted(p.name for p in directory.iterdir())


# ---- construction ----


def test_identical_source_and_target_rejected(source_dir: Path):
    with pytest.raises(ConfigError):
        SaveWatcher(str(source_dir), str(source_dir))


def test_from_config(source_dir: Path, target_dir: Path):
    cfg = WatcherConfig(str(source_dir), str(target_dir), filter="*.sav", file_event_delay=10)
    watcher = SaveWatcher.from_config(cfg)
    assert watcher.config == cfg
    assert not watcher.is_running


# ---- handler ----


def test_handler_filters_on_file_name():
    seen = []
    handler = SaveFileHandler(seen.append, "*.sav")
    event = mock.Mock(src_path="/games/saves/slot1.sav")
    handler.on_modified(event)
    handler.on_modified(mock.Mock(src_path="/games/saves/notes.txt"))

    assert seen == ["/games/saves/slot1.sav"]
    assert handler.matches("/x/AUTOSAVE.sav")


def test_handler_case_follows_platform():
    handler = SaveFileHandler(lambda path: None, "*.sav")
    case_insensitive = os.path.normcase("A") == os.path.normcase("a")
    assert handler.matches("/x/SLOT1.SAV") is case_insensitive


# ---- lifecycle without a file system observer in the loop ----


def test_notifications_ignored_while_stopped(source_dir: Path, target_dir: Path):
    f = source_dir / "a.txt"
    f.write_text("a")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=10)

    watcher.notify(str(f))
    assert watcher.pending_count == 0


def test_stop_discards_unflushed_changes(source_dir: Path, target_dir: Path, run_watcher):
    f = source_dir / "a.txt"
    f.write_text("a")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=200)
    thread = run_watcher(watcher)

    watcher.notify(str(f))
    assert watcher.pending_count == 1
    watcher.stop()
    thread.join(5)

    assert not thread.is_alive()
    assert watcher.pending_count == 0
    time.sleep(0.4)
    assert _names(target_dir) == []


def test_stop_twice_is_safe(source_dir: Path, target_dir: Path, run_watcher):
    watcher = SaveWatcher(str(source_dir), str(target_dir))
    run_watcher(watcher)

    watcher.stop()
    watcher.stop()
    assert not watcher.is_running


def test_stop_before_start_is_noop(source_dir: Path, target_dir: Path):
    watcher = SaveWatcher(str(source_dir), str(target_dir))
    watcher.stop()
    assert not watcher.is_running


def test_second_start_returns_immediately(source_dir: Path, target_dir: Path, run_watcher):
    watcher = SaveWatcher(str(source_dir), str(target_dir))
    run_watcher(watcher)

    done = threading.Event()
    threading.Thread(target=lambda: (watcher.start(), done.set()), daemon=True).start()
    assert done.wait(2)
    assert watcher.is_running


def test_duplicate_notifications_coalesce(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    a = source_dir / "a.txt"
    b = source_dir / "b.txt"
    a.write_text("a")
    b.write_text("b")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=50)
    run_watcher(watcher)

    for _ in range(5):
        watcher.notify(str(a))
        watcher.notify(str(b))

    assert wait_for(lambda: watcher.stats.total_copied == 2, timeout=3)
    time.sleep(0.15)
    assert _names(target_dir) == ["0000_a.txt", "0001_b.txt"]
    assert watcher.stats.total_copied == 2


def test_restart_after_stop(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    a = source_dir / "a.txt"
    a.write_text("a")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=20)
    run_watcher(watcher)
    watcher.stop()

    run_watcher(watcher)
    watcher.notify(str(a))
    assert wait_for(lambda: (target_dir / "0000_a.txt").exists(), timeout=3)


# ---- end to end through watchdog ----


def test_burst_of_writes_gives_one_backup(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    a = source_dir / "a.txt"
    a.write_text("start")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=50)
    run_watcher(watcher)

    for i in range(3):
        a.write_text(f"write {i}")
    assert wait_for(lambda: _names(target_dir) == ["0000_a.txt"], timeout=5)
    time.sleep(0.2)
    assert _names(target_dir) == ["0000_a.txt"]
    assert (target_dir / "0000_a.txt").read_text() == "write 2"

    a.write_text("again")
    assert wait_for(lambda: _names(target_dir) == ["0000_a.txt", "0001_a.txt"], timeout=5)
    assert (target_dir / "0001_a.txt").read_text() == "again"


def test_two_files_in_one_window(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    b = source_dir / "b.txt"
    c = source_dir / "c.txt"
    b.write_text("b")
    c.write_text("c")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=100)
    run_watcher(watcher)

    b.write_text("b2")
    c.write_text("c2")

    assert wait_for(lambda: len(_names(target_dir)) == 2, timeout=5)
    names = _names(target_dir)
    assert names in (["0000_b.txt", "0001_c.txt"], ["0000_c.txt", "0001_b.txt"])


def test_subdirectories_are_watched(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    nested = source_dir / "campaign" / "slot1"
    nested.mkdir(parents=True)
    save = nested / "game.sav"
    save.write_text("x")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=50, filter="*.sav")
    run_watcher(watcher)

    (source_dir / "ignored.txt").write_text("nope")
    save.write_text("y")

    assert wait_for(lambda: _names(target_dir) == ["0000_game.sav"], timeout=5)
    time.sleep(0.2)
    assert _names(target_dir) == ["0000_game.sav"]


def test_existing_backup_is_not_overwritten(source_dir: Path, target_dir: Path, run_watcher, wait_for, caplog):
    a = source_dir / "a.txt"
    a.write_text("a")
    existing = target_dir / "0000_a.txt"
    existing.write_bytes(b"keep me")
    watcher = SaveWatcher(str(source_dir), str(target_dir), file_event_delay=30)
    run_watcher(watcher)

    a.write_text("changed")
    assert wait_for(lambda: watcher.stats.total_failed >= 1, timeout=5)

    assert existing.read_bytes() == b"keep me"
    assert _names(target_dir) == ["0000_a.txt"]
    assert "FileExistsError occurred:" in caplog.text


def test_stop_during_flush_lets_batch_finish(source_dir: Path, target_dir: Path, run_watcher, wait_for):
    a = source_dir / "a.txt"
    b = source_dir / "b.txt"
    a.write_text("a")
    b.write_text("b")
    copying = threading.Event()
    release = threading.Event()

    def _hold_first_copy(rec):
        if not copying.is_set():
            copying.set()
            release.wait(5)

    watcher = SaveWatcher(
        str(source_dir), str(target_dir), file_event_delay=200, on_copy_complete=_hold_first_copy
    )
    run_watcher(watcher)

    watcher.notify(str(a))
    assert copying.wait(5)

    # flush of a.txt is blocked; b.txt arrives and arms a new window
    watcher.notify(str(b))
    assert watcher.pending_count == 1
    watcher.stop()
    assert watcher.pending_count == 0
    assert not watcher.is_running

    release.set()
    assert wait_for(lambda: watcher.stats.total_copied == 1, timeout=5)
    time.sleep(0.5)
    assert _names(target_dir) == ["0000_a.txt"]
    assert watcher.stats.total_copied == 1
    assert watcher.stats.total_failed == 0
