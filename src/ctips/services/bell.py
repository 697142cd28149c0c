"""Audible alert for incoming notifications."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QUrl
from PyQt6.QtWidgets import QApplication

log = logging.getLogger(__name__)


class Bell:
    """Play a WAV file through QSoundEffect, or the system beep when no file is set."""

    def __init__(self, sound_file: str = "", enabled: bool = True, volume: float = 0.5) -> None:
        self.enabled = enabled
        self._effect: Optional[object] = None
        if not enabled or not sound_file:
            return
        path = Path(sound_file).expanduser()
        if not path.is_file():
            log.warning("Sound file %s not found; using system beep", path)
            return
        try:
            from PyQt6.QtMultimedia import QSoundEffect

            effect = QSoundEffect()
            effect.setSource(QUrl.fromLocalFile(str(path)))
            effect.setVolume(volume)
            self._effect = effect
        except Exception as e:  # QtMultimedia backends are missing on some systems
            log.warning("QSoundEffect unavailable (%s); using system beep", e)
            self._effect = None

    def play(self) -> None:
        if not self.enabled:
            return
        if self._effect is not None:
            self._effect.play()  # type: ignore[attr-defined]
        else:
            QApplication.beep()
