"""Application wiring.

Sets up QApplication and the service objects separately from the entry
point in main.py so they can be built (and torn down) from tests.
"""
from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any, Callable, Optional

from PyQt6.QtWidgets import QApplication

from .models import store
from .models.notification_log import NotificationLog
from .services import identity
from .services.alert import AlertStateMachine
from .services.bell import Bell
from .services.connection import ConnectionManager, build_endpoint
from .services.sink import NotificationSink
from .utils.qt_helpers import apply_modern_style

log = logging.getLogger(__name__)


def build_app(existing: Optional[QApplication] = None, theme: str = "auto") -> QApplication:
    """Return a QApplication instance, creating one if needed, and apply modern styling.

    Also ensures the app keeps running in the tray when the last window is closed.
    """
    app = existing or QApplication.instance()  # type: ignore[assignment]
    if app is None:
        app = QApplication([])
    app.setQuitOnLastWindowClosed(False)
    apply_modern_style(app, theme=theme)
    return app


def build_services(
    cfg: SimpleNamespace,
    *,
    bell: Any = None,
    socket_factory: Optional[Callable[[str], Any]] = None,
) -> SimpleNamespace:
    """Create the connection manager, alert machine, log and sink, wired together.

    `cfg` is the `.app` namespace returned by load_config().
    """
    keep_history = bool(getattr(cfg, "keep_history", True))
    if keep_history:
        try:
            store.init_db()
        except Exception as e:
            log.warning("History database unavailable, keeping notices in memory only: %s", e)
            keep_history = False
    notices = NotificationLog(persist=keep_history)
    notices.restore(int(getattr(cfg, "history_limit", 500)))

    alert = AlertStateMachine(interval_ms=int(getattr(cfg, "blink_interval_ms", 500)))
    if bell is None:
        bell = Bell(sound_file=str(getattr(cfg, "sound_file", "")), enabled=bool(getattr(cfg, "play_sound", True)))
    sink = NotificationSink(
        notices,
        alert,
        bell=bell,
        toast_timeout_ms=int(getattr(cfg, "toast_timeout_ms", 300_000)),
    )

    kwargs: dict[str, Any] = {}
    if socket_factory is not None:
        kwargs["socket_factory"] = socket_factory
    connection = ConnectionManager(
        ping_interval_seconds=int(getattr(cfg, "ping_interval_seconds", 15)),
        liveness_window_seconds=int(getattr(cfg, "liveness_window_seconds", 30)),
        **kwargs,
    )
    connection.text_received.connect(sink.on_text)

    return SimpleNamespace(notices=notices, alert=alert, bell=bell, sink=sink, connection=connection)


def connect_service(connection: ConnectionManager, cfg: SimpleNamespace) -> bool:
    """Resolve the machine id and open the connection. Returns False if not attempted."""
    try:
        machine_id = identity.resolve(getattr(cfg, "machine_id", "") or None)
    except identity.IdentityUnavailable as e:
        log.error("Not connecting: %s", e)
        return False
    log.info("address: %s", machine_id)
    try:
        endpoint = build_endpoint(
            str(getattr(cfg, "url", "")),
            machine_id,
            origin_prefix=str(getattr(cfg, "origin_prefix", "rumbladeApp")),
            uuid_prefix=str(getattr(cfg, "uuid_prefix", "ctips")),
        )
    except ValueError as e:
        log.error("Not connecting: %s", e)
        return False
    connection.connect(endpoint)
    return True


def shutdown_services(services: SimpleNamespace) -> None:
    """Stop timers and release the socket. Safe to call more than once."""
    services.connection.close()
    services.alert.stop()
