"""
core/scheduler.py -- Background passive token rotation.

One daemon thread wakes every `interval` seconds and, unless a stop was
requested, runs the rotation callback while holding the shared engine lock.
The wait is a threading.Event wait, so stop() wakes the thread immediately
instead of letting it sleep out the rest of the interval.

Usage:
    scheduler = RotationScheduler(60.0, lock, store_rotate_with_grace)
    scheduler.start()
    ...
    scheduler.stop()   # wakes, joins, no further rotations
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger("doorlockd.scheduler")


class RotationScheduler:
    def __init__(self, interval: float, lock: threading.Lock, rotate: Callable[[], None]) -> None:
        self.interval = interval
        self._lock = lock
        self._rotate = rotate
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="token-rotation", daemon=True)
        self._thread.start()
        logger.info("Token rotation every %.1fs started", self.interval)

    def stop(self) -> None:
        """Wake the thread, wait for it to exit. Safe to call more than once."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
            logger.info("Token rotation stopped")

    def _run(self) -> None:
        # Event.wait returns True only when stop() was called.
        while not self._stop.wait(self.interval):
            with self._lock:
                # stop() may have been called while we waited for the lock
                if self._stop.is_set():
                    break
                try:
                    self._rotate()
                except Exception:
                    logger.exception("Passive token rotation failed")
