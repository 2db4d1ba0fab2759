"""
vizbeats - Frame Transport
Fire-and-forget delivery of frames and events to in-process subscribers and to
a remote renderer over TCP (newline-delimited JSON).

Outbound:  {"type": "audio_frame" | "scene_change" | "config_update", "payload": {...}}\n
Inbound:   {"type": "transport_sync", "payload": {"playing": true, "position": 12.5}}\n
           {"type": "switch_scene", "payload": {"name": "drop"}}\n
"""

import json
import queue
import socket
import threading
import time
from typing import Callable, Dict, List, Optional

from config import ConnectionConfig
from logging_utils import log_event

Subscriber = Callable[[str, dict], None]
InboundHandler = Callable[[dict], None]


def encode_message(message_type: str, payload) -> bytes:
    return (json.dumps({"type": message_type, "payload": payload}, separators=(",", ":")) + "\n").encode("utf-8")


class FrameTransport:
    """
    Outbound messages go through a bounded queue drained by a worker thread;
    when the queue is full the oldest message is dropped. The worker
    reconnects every `reconnect_delay_ms` while auto_connect is on.
    """

    def __init__(self, connection: Optional[ConnectionConfig] = None, dry_run: bool = False,
                 status_callback: Optional[Callable[[str, bool], None]] = None,
                 socket_factory=socket.create_connection):
        self.connection = connection or ConnectionConfig()
        self.status_callback = status_callback
        self._socket_factory = socket_factory
        self._dry_run = dry_run

        self.socket: Optional[socket.socket] = None
        self.connected = False
        self.running = False
        self._user_disconnected = False
        self._socket_lock = threading.Lock()

        self.send_queue: queue.Queue = queue.Queue(maxsize=max(1, int(self.connection.queue_size)))
        self.dropped_messages = 0
        self.sent_messages = 0

        self._subscribers: List[Subscriber] = []
        self._handlers: Dict[str, List[InboundHandler]] = {}
        self._registry_lock = threading.Lock()

        self.worker_thread: Optional[threading.Thread] = None
        self.reader_thread: Optional[threading.Thread] = None

    # ---- subscribers / handlers --------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register an in-process subscriber; returns an unsubscribe function."""
        with self._registry_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._registry_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def on(self, message_type: str, handler: InboundHandler) -> None:
        """Register a handler for an inbound control message type."""
        with self._registry_lock:
            self._handlers.setdefault(message_type, []).append(handler)

    # ---- outbound ----------------------------------------------------------

    def emit(self, message_type: str, payload) -> None:
        with self._registry_lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(message_type, payload)
            except Exception as e:
                log_event("ERROR", "Transport", "Subscriber failed", type=message_type, error=e)

        if not self.running:
            return
        self._enqueue((message_type, payload))

    def _enqueue(self, item) -> None:
        while True:
            try:
                self.send_queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self.send_queue.get_nowait()
                    self.dropped_messages += 1
                except queue.Empty:
                    pass

    def set_dry_run(self, enabled: bool) -> None:
        """Enable/disable dry-run mode (log only, no network send)."""
        self._dry_run = enabled
        state = "ON" if enabled else "OFF"
        log_event("INFO", "Transport", f"Dry-run {state}")

    # ---- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.worker_thread = threading.Thread(target=self._worker_loop, daemon=True, name="FrameTransport")
        self.worker_thread.start()
        log_event("INFO", "Transport", "Started", host=self.connection.host, port=self.connection.port,
                  dry_run=self._dry_run)

        if self.connection.auto_connect and not self._dry_run:
            self.connect()

    def stop(self, timeout: float = 1.0) -> None:
        self.running = False
        worker = self.worker_thread
        self.worker_thread = None
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=timeout)
        self.disconnect()

        while not self.send_queue.empty():
            try:
                self.send_queue.get_nowait()
            except queue.Empty:
                break
        log_event("INFO", "Transport", "Stopped", sent=self.sent_messages, dropped=self.dropped_messages)

    def connect(self) -> bool:
        if self.connected:
            return True
        host, port = self.connection.host, self.connection.port
        try:
            sock = self._socket_factory((host, port), 5.0)
            sock.settimeout(1.0)
        except OSError as e:
            err_str = str(e)
            if len(err_str) > 40:
                err_str = err_str[:40] + "..."
            self._notify_status(f"Connection failed: {err_str}", False)
            log_event("WARN", "Transport", "Connection failed", host=host, port=port, error=err_str)
            return False

        with self._socket_lock:
            self.socket = sock
            self.connected = True
        self.reader_thread = threading.Thread(target=self._reader_loop, args=(sock,), daemon=True,
                                              name="FrameTransportReader")
        self.reader_thread.start()
        self._notify_status(f"Connected to renderer at {host}:{port}", True)
        log_event("INFO", "Transport", "Connected", host=host, port=port)
        return True

    def disconnect(self) -> None:
        with self._socket_lock:
            sock = self.socket
            self.socket = None
            was_connected = self.connected
            self.connected = False
        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                log_event("DEBUG", "Transport", "Error closing socket", error=e)
        if was_connected:
            self._notify_status("Disconnected", False)
            log_event("INFO", "Transport", "Disconnected")

    def user_disconnect(self) -> None:
        """Explicit disconnect; suppresses auto-reconnect until user_connect()."""
        self._user_disconnected = True
        self.disconnect()

    def user_connect(self) -> bool:
        self._user_disconnected = False
        return self.connect()

    # ---- inbound -----------------------------------------------------------

    def dispatch_inbound(self, line) -> bool:
        """Decode one inbound line and run its handlers. Returns False when nothing handled it."""
        try:
            message = json.loads(line)
        except (TypeError, ValueError) as e:
            log_event("WARN", "Transport", "Ignoring malformed inbound message", error=e)
            return False
        if not isinstance(message, dict) or "type" not in message:
            log_event("WARN", "Transport", "Ignoring inbound message without type")
            return False

        payload = message.get("payload") or {}
        with self._registry_lock:
            handlers = list(self._handlers.get(str(message["type"]), ()))
        if not handlers:
            log_event("DEBUG", "Transport", "No handler for inbound message", type=message["type"])
            return False
        for handler in handlers:
            try:
                handler(payload)
            except Exception as e:
                log_event("ERROR", "Transport", "Inbound handler failed", type=message["type"], error=e)
        return True

    # ---- workers -----------------------------------------------------------

    def _worker_loop(self) -> None:
        next_reconnect = time.monotonic() + self.connection.reconnect_delay_ms / 1000.0

        while self.running:
            if (not self.connected and not self._dry_run and self.connection.auto_connect
                    and not self._user_disconnected and time.monotonic() >= next_reconnect):
                self.connect()
                next_reconnect = time.monotonic() + self.connection.reconnect_delay_ms / 1000.0

            try:
                message_type, payload = self.send_queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                self._send(message_type, payload)
            except Exception as e:
                log_event("ERROR", "Transport", "Worker error", error=e)

    def _send(self, message_type: str, payload) -> None:
        if self._dry_run:
            log_event("DEBUG", "Transport", "Dry-run", type=message_type)
            self.sent_messages += 1
            return

        with self._socket_lock:
            sock = self.socket
        if sock is None:
            return

        try:
            sock.sendall(encode_message(message_type, payload))
            self.sent_messages += 1
        except socket.timeout:
            log_event("WARN", "Transport", "Send timeout")
        except OSError as e:
            log_event("ERROR", "Transport", "Send error", error=e)
            self.disconnect()

    def _reader_loop(self, sock) -> None:
        buffer = b""
        while self.socket is sock:
            try:
                chunk = sock.recv(4096)
            except socket.timeout:
                continue
            except OSError:
                break
            if not chunk:
                break
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if line.strip():
                    self.dispatch_inbound(line.decode("utf-8", errors="replace"))

        if self.socket is sock:
            self.disconnect()

    def _notify_status(self, message: str, connected: bool) -> None:
        if self.status_callback:
            self.status_callback(message, connected)
