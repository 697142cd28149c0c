from __future__ import annotations

import enum
import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal as Signal

log = logging.getLogger(__name__)

DEFAULT_BLINK_INTERVAL_MS = 500


class AlertState(enum.Enum):
    QUIESCENT = "quiescent"
    BLINK_A = "blink_a"  # alert icon shown
    BLINK_B = "blink_b"  # normal icon shown while blinking


class AlertStateMachine(QObject):
    """Blinking tray indicator for unacknowledged notifications.

    start() is called for every new notification; acknowledge() when the user
    looks at them. While active, each timer tick toggles BLINK_A <-> BLINK_B.
    """

    state_changed = Signal(object)

    def __init__(self, interval_ms: int = DEFAULT_BLINK_INTERVAL_MS, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._state = AlertState.QUIESCENT
        self._timer = QTimer(self)
        self._timer.setInterval(int(interval_ms))
        self._timer.timeout.connect(self.tick)

    @property
    def state(self) -> AlertState:
        return self._state

    def is_active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        # QTimer.start() on a running timer restarts it, which resets the phase
        self._timer.start()
        self._set_state(AlertState.BLINK_B)

    def tick(self) -> None:
        if not self._timer.isActive():
            return
        if self._state is AlertState.BLINK_A:
            self._set_state(AlertState.BLINK_B)
        else:
            self._set_state(AlertState.BLINK_A)

    def acknowledge(self) -> None:
        if self._timer.isActive():
            self._timer.stop()
        self._set_state(AlertState.QUIESCENT)

    stop = acknowledge

    def _set_state(self, state: AlertState) -> None:
        if state is self._state:
            return
        self._state = state
        log.debug("Alert state -> %s", state.value)
        self.state_changed.emit(state)
