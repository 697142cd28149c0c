from __future__ import annotations

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QFont, QIcon, QPainter, QPixmap
from PyQt6.QtWidgets import QApplication

try:
    import qdarktheme  # type: ignore
except Exception:
    # PyQtDarkTheme is optional (no wheels for newer Pythons); keep the native style then.
    qdarktheme = None  # type: ignore

TRAY_NORMAL_COLOR = "#1e88e5"
TRAY_ALERT_COLOR = "#e53935"
STATE_ON_COLOR = "#43a047"
STATE_OFF_COLOR = "#9e9e9e"

_EXTRA_QSS = """
QPushButton, QListWidget {
    border-radius: 8px;
}
QListWidget::item { padding: 4px 6px; }
QMenu::item { border-radius: 6px; padding: 6px 12px; }
QLabel[ct="status"] { color: palette(mid); }
"""


def apply_modern_style(app: QApplication, theme: str = "auto") -> None:
    """Apply PyQtDarkTheme as the single source of styling.

    - Uses qdarktheme.setup_theme with theme = 'auto' | 'dark' | 'light'.
    - When theme='auto', the app follows the OS theme and updates live.
    """
    if qdarktheme is not None:
        if hasattr(qdarktheme, "setup_theme"):
            qdarktheme.setup_theme(theme=theme, corner_shape="rounded", additional_qss=_EXTRA_QSS)
        elif hasattr(qdarktheme, "load_stylesheet"):
            # PyQtDarkTheme < 2.0
            base_theme = theme if theme in ("dark", "light") else "dark"
            try:
                app.setStyleSheet(qdarktheme.load_stylesheet(base_theme) + _EXTRA_QSS)
            except Exception:
                pass

    f: QFont = app.font()
    if f.pointSize() > 0:
        f.setPointSize(max(f.pointSize(), 10))
    else:
        f.setPixelSize(max(f.pixelSize(), 14))
    app.setFont(f)


def make_dot_pixmap(color: str, size: int = 16) -> QPixmap:
    """A filled circle on a transparent background."""
    pm = QPixmap(size, size)
    pm.fill(Qt.GlobalColor.transparent)
    painter = QPainter(pm)
    try:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(color))
        margin = max(1, size // 8)
        painter.drawEllipse(margin, margin, size - 2 * margin, size - 2 * margin)
    finally:
        painter.end()
    return pm


def make_dot_icon(color: str, size: int = 64) -> QIcon:
    return QIcon(make_dot_pixmap(color, size))
