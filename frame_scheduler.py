"""
vizbeats - Frame Scheduler
Fixed-interval loop on a dedicated thread with drift correction.
An overrunning tick delays the next one; no frames are skipped.
"""

import threading
import time
from typing import Callable, Optional

from errors import ConfigurationError
from logging_utils import log_event


def _reraise(error: BaseException) -> None:
    raise error


class FrameScheduler:
    """
    Calls `callback(elapsed_seconds)` `frame_rate` times per second.

    clock/sleeper/error_handler are injectable for tests. The default error
    handler re-raises, which ends the loop; a handler that returns normally
    keeps it running.
    """

    def __init__(self, frame_rate: float, callback: Callable[[float], None],
                 monotonic_clock: Callable[[], float] = time.monotonic,
                 sleeper: Optional[Callable[[float], None]] = None,
                 error_handler: Callable[[BaseException], None] = _reraise):
        try:
            frame_rate = float(frame_rate)
        except (TypeError, ValueError):
            raise ConfigurationError(f"frame_rate must be a number: {frame_rate!r}") from None
        if frame_rate <= 0:
            raise ConfigurationError("frame_rate must be positive")

        self.frame_rate = frame_rate
        self.interval = 1.0 / frame_rate
        self.callback = callback
        self._clock = monotonic_clock
        self._sleeper = sleeper
        self._error_handler = error_handler
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.tick_count = 0
        self.overrun_count = 0
        self.last_error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> bool:
        """Start the loop thread. False when a previous loop is still winding down."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                if not self._stop_event.is_set():
                    return True
                stopping = True
            else:
                stopping = False
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._run_loop, args=(self._stop_event,), daemon=True, name="FrameScheduler"
                )
                self._thread.start()
        if stopping:
            log_event("WARN", "Scheduler", "Previous loop still stopping, start ignored")
            return False
        log_event("INFO", "Scheduler", "Started", frame_rate=self.frame_rate)
        return True

    def stop(self, timeout: float = 1.0) -> None:
        """Cooperative stop. Safe to call from inside the tick callback (no self-join)."""
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                log_event("WARN", "Scheduler", "Loop thread did not stop within timeout", timeout=timeout)
        log_event("INFO", "Scheduler", "Stopped", ticks=self.tick_count, overruns=self.overrun_count)

    def _sleep(self, seconds: float, stop_event: threading.Event) -> None:
        if self._sleeper is not None:
            self._sleeper(seconds)
        else:
            # Wakes early on stop
            stop_event.wait(seconds)

    def _run_loop(self, stop_event: threading.Event) -> None:
        started_at = self._clock()
        while not stop_event.is_set():
            loop_started = self._clock()
            try:
                self.callback(loop_started - started_at)
            except Exception as e:
                self.last_error = e
                try:
                    self._error_handler(e)
                except Exception as fatal:
                    log_event("ERROR", "Scheduler", "Tick failed, stopping loop", error=fatal)
                    stop_event.set()
                    break
            finally:
                self.tick_count += 1

            duration = self._clock() - loop_started
            sleep_time = self.interval - duration
            if sleep_time > 0:
                self._sleep(sleep_time, stop_event)
            else:
                self.overrun_count += 1
