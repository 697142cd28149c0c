"""SQLite persistence for the notification history.

Keeps every received notice so the log view can be restored after a restart.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from platformdirs import PlatformDirs

log = logging.getLogger(__name__)

APP_NAME = "CTips"
APP_AUTHOR = "CTips"
_DB_FILENAME = "ctips.db"


def db_path() -> Path:
    """Public accessor for the database path in the user data directory."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=False)
    data_dir = Path(dirs.user_data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / _DB_FILENAME


def init_db() -> Path:
    """Initialize database and ensure schema exists. Returns DB path."""
    path = db_path()
    existed = path.exists()
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS notices (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts REAL NOT NULL,          -- unix timestamp (seconds) of receipt
                text TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_notices_ts ON notices(ts)")
        conn.commit()
    finally:
        conn.close()
    if existed:
        log.info("Found existing database at %s", path)
    else:
        log.info("Created new database at %s", path)
    return path


def save_notice(ts: float, text: str) -> int:
    """Insert a notice row and return its id."""
    path = db_path()
    with sqlite3.connect(path) as conn:
        cur = conn.execute("INSERT INTO notices(ts, text) VALUES (?, ?)", (float(ts), text))
        conn.commit()
        row_id = int(cur.lastrowid)
    log.debug("Saved notice id=%s ts=%s", row_id, ts)
    return row_id


def delete_notice(notice_id: int) -> None:
    path = db_path()
    with sqlite3.connect(path) as conn:
        conn.execute("DELETE FROM notices WHERE id=?", (int(notice_id),))
        conn.commit()


def clear_notices() -> None:
    """Delete all rows from notices."""
    path = db_path()
    with sqlite3.connect(path) as conn:
        conn.execute("DELETE FROM notices")
        conn.commit()


def load_notices(limit: int = 500) -> list[tuple[int, float, str]]:
    """Return up to `limit` (id, ts, text) rows, newest first."""
    path = db_path()
    with sqlite3.connect(path) as conn:
        cur = conn.execute(
            "SELECT id, ts, text FROM notices ORDER BY id DESC LIMIT ?",
            (max(0, int(limit)),),
        )
        return [(int(r[0]), float(r[1]), str(r[2])) for r in cur]
