# pricewatch/storage/database.py

"""SQLite connection and schema shared by the pricewatch stores."""

import logging
import sqlite3
from pathlib import Path

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS latest_snapshots (
    user_id    TEXT    PRIMARY KEY,
    snapshot   TEXT    NOT NULL,
    updated_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS competitors (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id    TEXT    NOT NULL UNIQUE,
    name       TEXT    NOT NULL,
    url        TEXT    NOT NULL,
    created_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS reports (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    competitor_id  INTEGER NOT NULL,
    user_id        TEXT    NOT NULL,
    delta          TEXT    NOT NULL,
    insight        TEXT    NOT NULL,
    classification TEXT    NOT NULL,
    last_scan_time TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_reports_user_time
    ON reports(user_id, last_scan_time);
"""


def connect(db_path: Path | None = None) -> sqlite3.Connection:
    """Open (and if needed create) the pricewatch database.

    ``":memory:"`` is honoured for tests.
    """
    path = db_path or Settings.DB_PATH
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    if str(path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(_SCHEMA)
    logger.debug("Database opened at %s", path)
    return conn
