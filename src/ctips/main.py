import sys
import logging

# Allow running as a script (python path/to/ctips/main.py) by adding src to sys.path
if not __package__:
    from pathlib import Path as _Path
    _src = _Path(__file__).resolve().parents[1]
    if str(_src) not in sys.path:
        sys.path.insert(0, str(_src))

from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import QApplication, QMenu, QMessageBox, QSystemTrayIcon

from ctips.app import build_app, build_services, connect_service, shutdown_services
from ctips.config import data_dir, load_config
from ctips.services import notifier
from ctips.services.alert import AlertState
from ctips.utils.qt_helpers import TRAY_ALERT_COLOR, TRAY_NORMAL_COLOR, make_dot_icon
from ctips.views import MainWindow

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_file_logging(level_name: str) -> None:
    log = logging.getLogger("ctips")
    try:
        logfile = data_dir() / "ctips.log"
        root_logger = logging.getLogger()
        level = getattr(logging, level_name, logging.INFO)
        root_logger.setLevel(level)
        # Avoid adding duplicate file handlers
        for h in root_logger.handlers:
            if isinstance(h, logging.FileHandler) and str(getattr(h, "baseFilename", "")) == str(logfile):
                return
        fh = logging.FileHandler(str(logfile), encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(fh)
        log.info("Logging to %s (level %s)", logfile, level_name)
    except Exception as e:
        log.warning("File logging unavailable: %s", e)


def create_tray_icon(app: QApplication, main_window: MainWindow) -> QSystemTrayIcon:
    normal_icon = make_dot_icon(TRAY_NORMAL_COLOR)
    tray = QSystemTrayIcon(normal_icon, app)

    menu = QMenu()
    open_action = QAction("Open CTips…", menu)
    quit_action = QAction("Quit", menu)

    def _open():
        main_window.show()
        main_window.raise_()
        main_window.activateWindow()

    def _confirm_quit():
        res = QMessageBox.question(
            None,
            "Quit CTips",
            "Are you sure you want to close CTips?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if res == QMessageBox.StandardButton.Yes:
            app.quit()

    open_action.triggered.connect(_open)
    quit_action.triggered.connect(_confirm_quit)
    menu.addAction(open_action)
    menu.addSeparator()
    menu.addAction(quit_action)

    tray.setContextMenu(menu)
    tray.setToolTip("CTips")
    tray.show()
    return tray


def main() -> int:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    log = logging.getLogger("ctips")

    ns = load_config()
    cfg = ns.app
    _configure_file_logging(str(cfg.log_level))
    log.info("Starting CTips; service %s, heartbeat every %ss", cfg.url, cfg.ping_interval_seconds)

    app = build_app(theme=str(cfg.theme))
    normal_icon = make_dot_icon(TRAY_NORMAL_COLOR)
    alert_icon = make_dot_icon(TRAY_ALERT_COLOR)
    app.setWindowIcon(normal_icon)

    services = build_services(cfg)
    main_window = MainWindow(services.sink)
    tray = create_tray_icon(app, main_window)
    notifier.tray = tray  # type: ignore[attr-defined]

    def _on_alert_state(state: AlertState) -> None:
        tray.setIcon(alert_icon if state is AlertState.BLINK_A else normal_icon)

    def _on_tray_activated(reason: QSystemTrayIcon.ActivationReason) -> None:
        services.sink.acknowledge()
        if reason == QSystemTrayIcon.ActivationReason.Context:
            return
        if main_window.isVisible() and main_window.isActiveWindow():
            main_window.hide()
            return
        main_window.show()
        main_window.raise_()
        main_window.activateWindow()

    def _on_message_clicked() -> None:
        log.debug("message notice clicked")
        services.sink.acknowledge()
        main_window.show()
        main_window.raise_()

    services.alert.state_changed.connect(_on_alert_state)
    services.sink.tooltip_changed.connect(lambda text: tray.setToolTip(text or "CTips"))
    services.connection.online_changed.connect(main_window.set_online)
    tray.activated.connect(_on_tray_activated)
    tray.messageClicked.connect(_on_message_clicked)

    def _cleanup():
        shutdown_services(services)
        tray.hide()

    app.aboutToQuit.connect(_cleanup)

    connect_service(services.connection, cfg)

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
