import httpx
import pytest

from ctips.services.connection import (
    ConnectionEvent,
    ConnectionManager,
    ConnectionState,
    LivenessTracker,
    PING_PAYLOAD,
    build_endpoint,
)


class FakeSignal:
    def __init__(self):
        self._slots = []

    def connect(self, slot):
        self._slots.append(slot)

    def disconnect(self, slot):
        if slot not in self._slots:
            raise TypeError("not connected")
        self._slots.remove(slot)

    def emit(self, *args):
        for slot in list(self._slots):
            slot(*args)


class FakeSocket:
    def __init__(self, origin):
        self.origin = origin
        self.connected = FakeSignal()
        self.disconnected = FakeSignal()
        self.textMessageReceived = FakeSignal()
        self.pong = FakeSignal()
        self.errorOccurred = FakeSignal()
        self.opened = []
        self.pings = []
        self.close_calls = 0
        self.fail_ping = False

    def open(self, url):
        self.opened.append(url.toString())

    def close(self):
        self.close_calls += 1

    def ping(self, payload):
        if self.fail_ping:
            raise RuntimeError("socket is not connected")
        self.pings.append(payload)


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def env(qapp):
    clock = Clock()
    sockets = []

    def factory(origin):
        sock = FakeSocket(origin)
        sockets.append(sock)
        return sock

    mgr = ConnectionManager(socket_factory=factory, clock=clock)
    endpoint = build_endpoint("ws://notice.example.com/ws?client=desk", "AA:BB:CC:DD:EE:FF")
    yield mgr, endpoint, clock, sockets
    mgr.close()


def connected(mgr, endpoint, clock, at):
    clock.now = at
    mgr.connect(endpoint)
    mgr.handle_event(ConnectionEvent.CONNECTED)


def test_build_endpoint_url_and_origin():
    ep = build_endpoint("ws://notice.example.com/ws?client=desk", "AA:BB:CC:DD:EE:FF")
    assert ep.origin == "rumbladeApp:AA:BB:CC:DD:EE:FF"
    params = httpx.URL(ep.url).params
    assert params["uuid"] == "ctips:AA:BB:CC:DD:EE:FF"
    assert params["client"] == "desk"
    assert httpx.URL(ep.url).host == "notice.example.com"


def test_build_endpoint_rejects_empty_url():
    with pytest.raises(ValueError):
        build_endpoint("", "AA:BB")


def test_connect_opens_socket_and_starts_heartbeat(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    assert len(sockets) == 1
    assert sockets[0].origin == endpoint.origin
    assert len(sockets[0].opened) == 1
    assert "uuid=" in sockets[0].opened[0]
    assert mgr.state is ConnectionState.CONNECTING
    assert mgr.is_heartbeat_active()


def test_connected_event_sets_state_and_online(env):
    mgr, endpoint, clock, sockets = env
    online = []
    mgr.online_changed.connect(online.append)
    connected(mgr, endpoint, clock, at=100.0)
    assert mgr.state is ConnectionState.CONNECTED
    assert mgr.tracker.last_pong == 100.0
    assert online == [True]

    sockets[0].disconnected.emit()
    assert mgr.state is ConnectionState.DISCONNECTED
    assert online == [True, False]


def test_disconnect_does_not_reconnect_by_itself(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=0.0)
    sockets[0].disconnected.emit()
    assert len(sockets[0].opened) == 1
    assert len(sockets) == 1


def test_heartbeat_timeline_pings_twice_then_reconnects(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=-10.0)
    sock = sockets[0]

    clock.now = 0.0
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sock.pings == [PING_PAYLOAD]
    assert sock.close_calls == 0

    clock.now = 15.0  # 25s since last pong
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sock.pings == [PING_PAYLOAD, PING_PAYLOAD]
    assert sock.close_calls == 0
    assert len(sock.opened) == 1

    clock.now = 30.0  # 40s since last pong
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert len(sock.pings) == 2
    assert sock.close_calls == 1
    assert len(sock.opened) == 2
    assert sock.opened[1] == sock.opened[0]
    assert len(sockets) == 1
    assert mgr.state is ConnectionState.CONNECTING


def test_fresh_pong_keeps_connection(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=0.0)
    clock.now = 20.0
    sockets[0].pong.emit(5, b"PING")
    clock.now = 45.0  # 25s since the pong
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sockets[0].pings == [PING_PAYLOAD]
    assert sockets[0].close_calls == 0


def test_liveness_boundary_is_strict(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=0.0)

    clock.now = 29.999
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sockets[0].close_calls == 0

    # Exactly one liveness window after the last pong counts as dead.
    clock.now = 30.0
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sockets[0].close_calls == 1
    assert len(sockets[0].opened) == 2


def test_heartbeat_while_disconnected_reconnects(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)  # never reaches CONNECTED
    clock.now = 15.0
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert sockets[0].pings == []
    assert sockets[0].close_calls == 1
    assert len(sockets[0].opened) == 2


def test_pong_ignored_when_not_connected(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    clock.now = 50.0
    mgr.handle_event(ConnectionEvent.PONG, b"PING")
    assert mgr.tracker.last_pong is None


def test_last_pong_never_moves_backwards():
    tracker = LivenessTracker()
    tracker.touch(10.0)
    tracker.touch(5.0)
    assert tracker.last_pong == 10.0
    assert tracker.is_alive(39.9)
    assert not tracker.is_alive(40.0)
    assert not LivenessTracker().is_alive(0.0)


def test_ping_failure_is_logged_not_raised(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=0.0)
    sockets[0].fail_ping = True
    clock.now = 15.0
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert mgr.state is ConnectionState.CONNECTED


def test_error_event_is_logged_only(env, caplog):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    sockets[0].errorOccurred.emit("RemoteHostClosedError")
    assert mgr.state is ConnectionState.CONNECTING
    assert "RemoteHostClosedError" in caplog.text


def test_text_frames_are_forwarded(env):
    mgr, endpoint, clock, sockets = env
    received = []
    mgr.text_received.connect(received.append)
    connected(mgr, endpoint, clock, at=0.0)
    sockets[0].textMessageReceived.emit('{"noticeData": {"message": "hi"}}')
    assert received == ['{"noticeData": {"message": "hi"}}']


def test_close_is_idempotent_and_stops_heartbeat(env):
    mgr, endpoint, clock, sockets = env
    connected(mgr, endpoint, clock, at=0.0)
    mgr.close()
    mgr.close()
    assert sockets[0].close_calls == 1
    assert not mgr.is_heartbeat_active()
    assert mgr.state is ConnectionState.DISCONNECTED


def test_close_without_connect_is_noop(qapp):
    mgr = ConnectionManager(socket_factory=FakeSocket)
    mgr.close()
    mgr.close()
    assert mgr.state is ConnectionState.DISCONNECTED


def test_late_connect_after_close_is_ignored(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    mgr.close()
    # signals were detached on teardown
    sockets[0].connected.emit()
    assert mgr.state is ConnectionState.DISCONNECTED
    # a callback already in flight is dropped too
    mgr.handle_event(ConnectionEvent.CONNECTED)
    assert mgr.state is ConnectionState.DISCONNECTED


def test_heartbeat_after_close_does_not_reopen(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    mgr.close()
    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert len(sockets) == 1
    assert len(sockets[0].opened) == 1


def test_second_connect_replaces_first_attempt(env):
    mgr, endpoint, clock, sockets = env
    mgr.connect(endpoint)
    mgr.connect(endpoint)
    assert len(sockets) == 2
    assert sockets[0].close_calls == 1
    # the released socket no longer drives state
    sockets[0].connected.emit()
    assert mgr.state is ConnectionState.CONNECTING
    sockets[1].connected.emit()
    assert mgr.state is ConnectionState.CONNECTED


def test_open_without_endpoint_is_skipped(qapp):
    mgr = ConnectionManager(socket_factory=FakeSocket)
    mgr._open()
    assert mgr.state is ConnectionState.DISCONNECTED


def test_failed_socket_creation_is_retried_by_heartbeat(qapp):
    sockets = []

    def flaky(origin):
        if not sockets:
            sockets.append(None)
            raise RuntimeError("QtWebSockets unavailable")
        sock = FakeSocket(origin)
        sockets.append(sock)
        return sock

    mgr = ConnectionManager(socket_factory=flaky, clock=Clock())
    mgr.connect(build_endpoint("ws://notice.example.com/ws", "AA:BB"))
    assert mgr.state is ConnectionState.DISCONNECTED
    assert mgr.is_heartbeat_active()

    mgr.handle_event(ConnectionEvent.HEARTBEAT)
    assert len(sockets[1].opened) == 1
    assert mgr.state is ConnectionState.CONNECTING
    mgr.close()
