"""WebSocket connection to the notification service with heartbeat/reconnect.

The manager owns exactly one socket. Every socket callback and every
heartbeat tick goes through ``handle_event`` so the state transitions live in
one place and are serialized by the Qt event loop.

Heartbeat policy, evaluated every ``ping_interval_seconds``:

- connected and the last pong is younger than ``liveness_window_seconds``:
  send a ``PING`` frame;
- otherwise close the socket and reopen the same endpoint.

That tick is the only reconnect mechanism; a disconnect on its own does not
reconnect, and there is no backoff.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx
from PyQt6.QtCore import QObject, QTimer, QUrl, pyqtSignal as Signal

log = logging.getLogger(__name__)

PING_PAYLOAD = b"PING"
DEFAULT_PING_INTERVAL_SECONDS = 15
DEFAULT_LIVENESS_WINDOW_SECONDS = 30


class ServiceConnectionError(ConnectionError):
    """Transport-level failure. Logged only; the heartbeat recovers."""


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionEvent(enum.Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    PONG = "pong"
    TEXT = "text"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class ConnectionEndpoint:
    base_url: str
    machine_id: str
    origin: str
    uuid_prefix: str = "ctips"

    @property
    def url(self) -> str:
        """Base URL with ``uuid=<prefix>:<machine id>`` merged into the query string."""
        url = httpx.URL(self.base_url).copy_merge_params({"uuid": f"{self.uuid_prefix}:{self.machine_id}"})
        return str(url)


def build_endpoint(
    base_url: str,
    machine_id: str,
    *,
    origin_prefix: str = "rumbladeApp",
    uuid_prefix: str = "ctips",
) -> ConnectionEndpoint:
    if not base_url:
        raise ValueError("Notification service URL is empty")
    return ConnectionEndpoint(
        base_url=base_url,
        machine_id=machine_id,
        origin=f"{origin_prefix}:{machine_id}",
        uuid_prefix=uuid_prefix,
    )


@dataclass
class LivenessTracker:
    last_pong: Optional[float] = None
    ping_interval_seconds: int = DEFAULT_PING_INTERVAL_SECONDS
    liveness_window_seconds: int = DEFAULT_LIVENESS_WINDOW_SECONDS

    def touch(self, now: float) -> None:
        # never moves backwards
        if self.last_pong is None or now > self.last_pong:
            self.last_pong = now

    def is_alive(self, now: float) -> bool:
        # Strict: a pong exactly one window old counts as dead.
        if self.last_pong is None:
            return False
        return self.last_pong + self.liveness_window_seconds > now


def _default_socket_factory(origin: str) -> Any:
    from PyQt6.QtWebSockets import QWebSocket

    return QWebSocket(origin)


class ConnectionManager(QObject):
    """Single duplex connection to the notification service.

    Emits:
      - state_changed(ConnectionState)
      - online_changed(bool)
      - text_received(str)
    """

    state_changed = Signal(object)
    online_changed = Signal(bool)
    text_received = Signal(str)

    def __init__(
        self,
        *,
        ping_interval_seconds: int = DEFAULT_PING_INTERVAL_SECONDS,
        liveness_window_seconds: int = DEFAULT_LIVENESS_WINDOW_SECONDS,
        socket_factory: Callable[[str], Any] = _default_socket_factory,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._socket_factory = socket_factory
        self._clock = clock
        self._socket: Any = None
        self._endpoint: Optional[ConnectionEndpoint] = None
        self._state = ConnectionState.DISCONNECTED
        self._closed = False
        self.tracker = LivenessTracker(
            ping_interval_seconds=ping_interval_seconds,
            liveness_window_seconds=liveness_window_seconds,
        )
        self._heartbeat = QTimer(self)
        self._heartbeat.setInterval(int(ping_interval_seconds * 1000))
        self._heartbeat.timeout.connect(self._on_heartbeat_timeout)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_heartbeat_active(self) -> bool:
        return self._heartbeat.isActive()

    # Public operations

    def connect(self, endpoint: ConnectionEndpoint) -> None:
        """Open the connection asynchronously and start the heartbeat."""
        if self._socket is not None:
            self._release_socket()
        self._closed = False
        self._endpoint = endpoint
        if not self._heartbeat.isActive():
            self._heartbeat.start()
        try:
            self._socket = self._socket_factory(endpoint.origin)
            self._wire(self._socket)
        except Exception as e:
            # the next heartbeat tick retries
            log.warning("%s", ServiceConnectionError(f"failed to create websocket: {e}"))
            self._socket = None
            return
        self._open()

    def close(self) -> None:
        """Stop the heartbeat and release the socket. Safe to call repeatedly."""
        if self._closed and self._socket is None:
            return
        self._closed = True
        if self._heartbeat.isActive():
            self._heartbeat.stop()
        if self._socket is not None:
            log.info("Closing websocket")
            self._release_socket()
        self._set_state(ConnectionState.DISCONNECTED)

    def handle_event(self, event: ConnectionEvent, payload: Any = None) -> None:
        """Single entry point for socket callbacks and heartbeat ticks."""
        if event is ConnectionEvent.CONNECTED:
            self._on_connected()
        elif event is ConnectionEvent.DISCONNECTED:
            self._on_disconnected()
        elif event is ConnectionEvent.PONG:
            self._on_pong(payload)
        elif event is ConnectionEvent.TEXT:
            log.debug("websocket message received: %s", payload)
            self.text_received.emit(str(payload))
        elif event is ConnectionEvent.ERROR:
            err = ServiceConnectionError(f"websocket error: {payload}")
            log.warning("%s", err)
        elif event is ConnectionEvent.HEARTBEAT:
            self._on_heartbeat()

    # Event handlers

    def _on_connected(self) -> None:
        if self._closed or self._socket is None:
            log.debug("Ignoring late connect after teardown")
            return
        log.info("websocket connected")
        self.tracker.touch(self._clock())
        self._set_state(ConnectionState.CONNECTED)

    def _on_disconnected(self) -> None:
        log.info("websocket disconnected")
        self._set_state(ConnectionState.DISCONNECTED)

    def _on_pong(self, payload: Any) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return
        log.debug("websocket got pong: %r", payload)
        self.tracker.touch(self._clock())

    def _on_heartbeat(self) -> None:
        now = self._clock()
        if self._state is ConnectionState.CONNECTED and self.tracker.is_alive(now):
            try:
                self._send_ping()
            except ServiceConnectionError as e:
                log.warning("%s", e)
            return
        log.info("websocket reconnect for timeout (state=%s, last_pong=%s)", self._state.value, self.tracker.last_pong)
        self._reopen()

    def _on_heartbeat_timeout(self) -> None:
        self.handle_event(ConnectionEvent.HEARTBEAT)

    # Socket plumbing

    def _send_ping(self) -> None:
        if self._socket is None:
            raise ServiceConnectionError("ping skipped: no socket")
        try:
            self._socket.ping(PING_PAYLOAD)
        except Exception as e:
            raise ServiceConnectionError(f"ping failed: {e}") from e

    def _open(self) -> None:
        if self._endpoint is None or self._socket is None:
            log.debug("open skipped: no endpoint or socket")
            return
        url = self._endpoint.url
        log.info("start connect websocket %s", url)
        self._set_state(ConnectionState.CONNECTING)
        try:
            self._socket.open(QUrl(url))
        except Exception as e:
            log.warning("%s", ServiceConnectionError(f"open failed: {e}"))
            self._set_state(ConnectionState.DISCONNECTED)

    def _reopen(self) -> None:
        if self._endpoint is None or self._closed:
            return
        if self._socket is None:
            self.connect(self._endpoint)
            return
        try:
            self._socket.close()
        except Exception as e:
            log.debug("close before reopen failed: %s", e)
        self._open()

    def _wire(self, sock: Any) -> None:
        sock.connected.connect(self._slot_connected)
        sock.disconnected.connect(self._slot_disconnected)
        sock.textMessageReceived.connect(self._slot_text)
        sock.pong.connect(self._slot_pong)
        self._error_signal(sock).connect(self._slot_error)

    def _unwire(self, sock: Any) -> None:
        for sig, slot in (
            (sock.connected, self._slot_connected),
            (sock.disconnected, self._slot_disconnected),
            (sock.textMessageReceived, self._slot_text),
            (sock.pong, self._slot_pong),
            (self._error_signal(sock), self._slot_error),
        ):
            try:
                sig.disconnect(slot)
            except (TypeError, RuntimeError):
                pass

    @staticmethod
    def _error_signal(sock: Any) -> Any:
        # Qt >= 6.5 renamed QWebSocket.error to errorOccurred
        sig = getattr(sock, "errorOccurred", None)
        return sig if sig is not None else sock.error

    def _release_socket(self) -> None:
        sock = self._socket
        self._socket = None
        if sock is None:
            return
        self._unwire(sock)
        try:
            sock.close()
        except Exception as e:
            log.debug("websocket close failed: %s", e)
        delete_later = getattr(sock, "deleteLater", None)
        if callable(delete_later):
            delete_later()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        was_online = self._state is ConnectionState.CONNECTED
        self._state = state
        self.state_changed.emit(state)
        is_online = state is ConnectionState.CONNECTED
        if was_online != is_online:
            self.online_changed.emit(is_online)

    # Slots bound to socket signals

    def _slot_connected(self) -> None:
        self.handle_event(ConnectionEvent.CONNECTED)

    def _slot_disconnected(self) -> None:
        self.handle_event(ConnectionEvent.DISCONNECTED)

    def _slot_text(self, message: str) -> None:
        self.handle_event(ConnectionEvent.TEXT, message)

    def _slot_pong(self, elapsed: int, payload: Any) -> None:
        self.handle_event(ConnectionEvent.PONG, payload)

    def _slot_error(self, error: Any) -> None:
        self.handle_event(ConnectionEvent.ERROR, error)
