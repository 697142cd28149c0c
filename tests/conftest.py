import os
import sys
from pathlib import Path

import pytest


def pytest_sessionstart(session):
    # Ensure headless Qt where applicable
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    # Ensure src is on sys.path without needing plugins
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def tmp_db(tmp_path, monkeypatch):
    from ctips.models import store

    dbfile = tmp_path / "ctips.db"
    monkeypatch.setattr(store, "db_path", lambda: dbfile)
    store.init_db()
    return dbfile
