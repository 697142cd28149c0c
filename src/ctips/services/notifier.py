"""OS notifications abstraction.

Relies on the application's system tray integration
(QSystemTrayIcon.showMessage), which Qt routes to native notifications
where available. Falls back to stderr if no tray is present.
"""
from __future__ import annotations

import sys

DEFAULT_TIMEOUT_MS = 300_000


def notify(title: str, message: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
    """Show a notification using the tray if available, else stderr. Never raises."""
    # main() assigns notifier.tray = tray
    try:
        from PyQt6.QtWidgets import QSystemTrayIcon  # type: ignore
        tray = globals().get("tray")
        if isinstance(tray, QSystemTrayIcon):
            tray.showMessage(title, message, QSystemTrayIcon.MessageIcon.Information, int(timeout_ms))
            return
    except Exception:
        pass

    print(f"[Notification] {title}: {message}", file=sys.stderr)
