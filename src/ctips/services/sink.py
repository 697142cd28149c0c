from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal as Signal

from ..models.notification_log import NotificationLog, NotificationRecord
from . import decoder, notifier
from .alert import AlertStateMachine

log = logging.getLogger(__name__)

TOAST_TITLE_FORMAT = "%Y-%m-%d %H:%M:%S"


class NotificationSink(QObject):
    """Receives decoded notification text and fans it out to the user.

    Every side effect (bell, toast, blink) is fire-and-forget: a failure is
    logged and the remaining ones still run.
    """

    record_added = Signal(object)
    record_removed = Signal(object)
    cleared = Signal()
    status_changed = Signal(str)
    tooltip_changed = Signal(str)

    def __init__(
        self,
        notification_log: NotificationLog,
        alert: AlertStateMachine,
        bell: Any = None,
        notify: Callable[..., None] = notifier.notify,
        toast_timeout_ms: int = notifier.DEFAULT_TIMEOUT_MS,
        clock: Callable[[], datetime] = datetime.now,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.notices = notification_log
        self._alert = alert
        self._bell = bell
        self._notify = notify
        self._toast_timeout_ms = toast_timeout_ms
        self._clock = clock

    def on_text(self, raw: str) -> Optional[NotificationRecord]:
        """Slot for ConnectionManager.text_received: decode and receive recognised notices."""
        notice = decoder.decode(raw)
        if notice is None:
            return None
        return self.receive(notice.message)

    def receive(self, text: str) -> NotificationRecord:
        log.info("receive server message: %s", text)
        now = self._clock()
        record = self.notices.add(text, received_at=now)
        self.record_added.emit(record)
        self.status_changed.emit(self.notices.status)

        if self._bell is not None:
            try:
                self._bell.play()
            except Exception as e:
                log.debug("bell failed: %s", e)
        try:
            self._notify(now.strftime(TOAST_TITLE_FORMAT), text, self._toast_timeout_ms)
        except Exception as e:
            log.debug("notify() failed: %s", e)
        self.tooltip_changed.emit(text)
        try:
            self._alert.start()
        except Exception as e:
            log.debug("blink start failed: %s", e)
        return record

    def delete(self, record: NotificationRecord) -> None:
        if self.notices.remove(record):
            self.record_removed.emit(record)
            self.status_changed.emit(self.notices.status)

    def clear(self) -> None:
        self.notices.clear()
        self.cleared.emit()
        self.status_changed.emit(self.notices.status)

    def acknowledge(self) -> None:
        """User looked at the notifications: stop blinking and reset the tooltip."""
        self._alert.acknowledge()
        self.tooltip_changed.emit("")
