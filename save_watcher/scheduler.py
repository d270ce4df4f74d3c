"""Trailing-edge debounce timer for Save Watcher.

Every ``rearm()`` pushes the deadline out by the configured delay; the
callback only runs once notifications have paused for that long.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """Restartable one-shot timer with at most one outstanding fire.

    Parameters
    ----------
    callback : callable
        Invoked with no arguments on the timer thread when the window
        expires.  Exceptions are logged and never reach the timer.
    delay_ms : int
        Quiet period in milliseconds required before the callback runs.
    """

    def __init__(self, callback: Callable[[], object], delay_ms: int):
        self._callback = callback
        self._delay = max(0, delay_ms) / 1000.0
        self._timer: threading.Timer | None = None
        # Identifies the current timer; a fire from a replaced timer is stale
        self._generation = 0
        self._active = False
        self._lock = threading.Lock()

    @property
    def delay_ms(self) -> int:
        return int(self._delay * 1000)

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def is_pending(self) -> bool:
        """Return whether a fire is currently scheduled."""
        with self._lock:
            return self._timer is not None

    def activate(self) -> None:
        """Allow ``rearm()`` to schedule fires."""
        with self._lock:
            self._active = True

    def rearm(self) -> None:
        """Cancel any scheduled fire and schedule a new one after the delay."""
        with self._lock:
            if not self._active:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = threading.Timer(self._delay, self._fire, args=(self._generation,))
            timer.daemon = True
            timer.name = "DebounceTimer"
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        """Cancel any scheduled fire and ignore further rearms.

        A callback that is already running is left to complete.
        """
        with self._lock:
            self._active = False
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if not self._active or generation != self._generation:
                return
            self._timer = None

        logger.debug("Debounce window elapsed; flushing.")
        try:
            self._callback()
        except Exception:
            logger.exception("Error in debounce callback")
