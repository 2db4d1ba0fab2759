"""
vizbeats - File Watcher
Polls a file's mtime on a daemon thread and calls back when it changes.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from logging_utils import log_event

DEFAULT_POLL_INTERVAL = 0.25


class FileWatcher:
    def __init__(self, path, poll_interval: float = DEFAULT_POLL_INTERVAL,
                 on_change: Optional[Callable[[Path], None]] = None):
        self.path = Path(path).expanduser().resolve()
        self.poll_interval = float(poll_interval)
        self.on_change = on_change
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_mtime: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._last_mtime = self._file_mtime()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True, name="FileWatcher")
        self._thread.start()
        log_event("INFO", "Watcher", "Watching", path=self.path)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def check(self) -> bool:
        """One poll step; returns True when a change was delivered."""
        current = self._file_mtime()
        if current is None:
            return False
        if self._last_mtime is not None and current <= self._last_mtime:
            return False

        self._last_mtime = current
        if self.on_change is not None:
            try:
                self.on_change(self.path)
            except Exception as e:
                log_event("ERROR", "Watcher", "Change handler failed", path=self.path, error=e)
        return True

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            self.check()

    def _file_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None
