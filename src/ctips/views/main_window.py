from __future__ import annotations

from PyQt6.QtCore import QPoint, QSize, Qt
from PyQt6.QtGui import QAction, QCloseEvent, QShowEvent
from PyQt6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMenu,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)

from ..models.notification_log import NotificationRecord
from ..services.sink import NotificationSink
from ..utils.qt_helpers import STATE_OFF_COLOR, STATE_ON_COLOR, make_dot_pixmap

_RECORD_ROLE = Qt.ItemDataRole.UserRole


class MainWindow(QMainWindow):
    """Notification log: newest first, with delete/clear and an online indicator."""

    def __init__(self, sink: NotificationSink) -> None:
        super().__init__()
        self.setWindowTitle("CTips")
        self.resize(520, 360)
        self._sink = sink
        self._on_pm = make_dot_pixmap(STATE_ON_COLOR)
        self._off_pm = make_dot_pixmap(STATE_OFF_COLOR)

        central = QWidget(self)
        v = QVBoxLayout(central)

        self.list_widget = QListWidget(central)
        self.list_widget.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.list_widget.customContextMenuRequested.connect(self._on_context_menu)
        v.addWidget(self.list_widget)

        footer = QHBoxLayout()
        self.state_label = QLabel(central)
        self.state_label.setPixmap(self._off_pm)
        self.state_label.setToolTip("Offline")
        self.info_label = QLabel("", central)
        self.info_label.setProperty("ct", "status")
        footer.addWidget(self.state_label)
        footer.addWidget(self.info_label, 1)
        v.addLayout(footer)

        self.setCentralWidget(central)

        for record in sink.notices:
            self.list_widget.addItem(self._make_item(record))
        self.info_label.setText(sink.notices.status)

        sink.record_added.connect(self._on_record_added)
        sink.record_removed.connect(self._on_record_removed)
        sink.cleared.connect(self.list_widget.clear)
        sink.status_changed.connect(self.info_label.setText)

    def _make_item(self, record: NotificationRecord) -> QListWidgetItem:
        item = QListWidgetItem(record.text)
        item.setSizeHint(QSize(470, 25))
        item.setToolTip(record.text)
        item.setData(_RECORD_ROLE, record)
        return item

    def set_online(self, online: bool) -> None:
        self.state_label.setPixmap(self._on_pm if online else self._off_pm)
        self.state_label.setToolTip("Online" if online else "Offline")

    def _on_record_added(self, record: NotificationRecord) -> None:
        self.list_widget.insertItem(0, self._make_item(record))
        self.list_widget.setCurrentRow(0)

    def _on_record_removed(self, record: NotificationRecord) -> None:
        for row in range(self.list_widget.count()):
            if self.list_widget.item(row).data(_RECORD_ROLE) is record:
                self.list_widget.takeItem(row)
                return

    def _on_context_menu(self, pos: QPoint) -> None:
        item = self.list_widget.itemAt(pos)
        if item is None:
            return
        self.list_widget.setCurrentItem(item)
        menu = QMenu(self)
        delete_action = QAction("Delete", menu)
        clear_action = QAction("Clear", menu)
        delete_action.triggered.connect(self.delete_selected)
        clear_action.triggered.connect(self.clear_with_confirmation)
        menu.addAction(delete_action)
        menu.addAction(clear_action)
        menu.exec(self.list_widget.viewport().mapToGlobal(pos))

    def delete_selected(self) -> None:
        item = self.list_widget.currentItem()
        if item is None:
            return
        record = item.data(_RECORD_ROLE)
        if record is not None:
            self._sink.delete(record)

    def confirm_clear(self) -> bool:
        res = QMessageBox.warning(
            self,
            "Warning",
            "Are you sure to clear logs?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return res == QMessageBox.StandardButton.Yes

    def clear_with_confirmation(self) -> None:
        if self.list_widget.count() == 0:
            return
        if not self.confirm_clear():
            return
        self._sink.clear()

    def showEvent(self, event: QShowEvent) -> None:  # type: ignore[override]
        super().showEvent(event)
        self._sink.acknowledge()

    # Don't quit the app when the main window is closed; just hide to tray
    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        event.ignore()
        self.hide()
