"""
vizbeats - MIDI Input
Polls a mido input port on a daemon thread and hands parsed events to a callback.
"""

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import mido

from logging_utils import log_event


@dataclass(frozen=True)
class MidiEvent:
    type: str          # note_on / note_off / control_change / program_change
    channel: int
    data1: int         # note / controller / program
    data2: int = 0     # velocity / value


def event_from_message(msg) -> Optional[MidiEvent]:
    """Convert a mido.Message; unsupported types return None."""
    if msg.type == "note_on":
        # note_on with velocity 0 is a note off by convention
        kind = "note_off" if msg.velocity == 0 else "note_on"
        return MidiEvent(kind, msg.channel, msg.note, msg.velocity)
    if msg.type == "note_off":
        return MidiEvent("note_off", msg.channel, msg.note, msg.velocity)
    if msg.type == "control_change":
        return MidiEvent("control_change", msg.channel, msg.control, msg.value)
    if msg.type == "program_change":
        return MidiEvent("program_change", msg.channel, msg.program, 0)
    return None


def available_devices() -> List[str]:
    try:
        return list(mido.get_input_names())
    except Exception as e:
        log_event("WARN", "MIDI", "Could not list input ports", error=e)
        return []


class MidiInput:
    """
    Opens `device` (substring match) or the first available input port.
    The read loop wakes every `poll_interval` seconds so stop() is bounded.
    """

    def __init__(self, device: Optional[str] = None, poll_interval: float = 0.01,
                 callback: Optional[Callable[[MidiEvent], None]] = None,
                 port_opener: Callable[[str], object] = mido.open_input):
        self.device = device
        self.poll_interval = max(0.001, float(poll_interval))
        self.callback = callback
        self._port_opener = port_opener
        self._port = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.port_name: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def resolve_port_name(self) -> Optional[str]:
        names = available_devices()
        if not names:
            return None
        if not self.device:
            return names[0]
        matches = [name for name in names if self.device in name]
        return matches[0] if matches else None

    def start(self, callback: Optional[Callable[[MidiEvent], None]] = None) -> bool:
        """Open the port and start polling. Returns False when no port is available."""
        if callback is not None:
            self.callback = callback
        if self.running:
            return True

        port_name = self.resolve_port_name()
        if port_name is None:
            log_event("WARN", "MIDI", "No MIDI input port available", device=self.device)
            return False
        try:
            self._port = self._port_opener(port_name)
        except (OSError, IOError) as e:
            log_event("ERROR", "MIDI", "Failed to open input port", port=port_name, error=e)
            return False

        self.port_name = port_name
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._read_loop, daemon=True, name="MidiInput")
        self._thread.start()
        log_event("INFO", "MIDI", "Listening", port=port_name)
        return True

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if self._port is not None:
            try:
                self._port.close()
            except Exception as e:
                log_event("WARN", "MIDI", "Error closing port", error=e)
            self._port = None

    def poll_once(self) -> int:
        """Dispatch all pending messages. Returns the number of events delivered."""
        port = self._port
        if port is None:
            return 0
        delivered = 0
        for msg in port.iter_pending():
            event = event_from_message(msg)
            if event is None or self.callback is None:
                continue
            try:
                self.callback(event)
            except Exception as e:
                log_event("ERROR", "MIDI", "Event handler failed", event=event, error=e)
            delivered += 1
        return delivered

    def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.poll_interval)
