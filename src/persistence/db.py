"""SQLite persistence for evaluation jobs.

The connection returned here supports execute(), fetchone(), fetchall(),
commit(), close(). Tables are created on first use.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

DB_PATH = Path("data/screening.db")

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS jobs (
    id                  TEXT PRIMARY KEY,
    title               TEXT NOT NULL,
    cv_document_id      TEXT NOT NULL,
    project_report_id   TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'queued',
    progress            INTEGER NOT NULL DEFAULT 0,
    result              TEXT,
    error               TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs(created_at);
"""


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Get or create a SQLite connection. Auto-creates tables on first use.

    ``":memory:"`` gives a private in-memory database.
    """
    if str(db_path) == ":memory:":
        conn = sqlite3.connect(":memory:")
    else:
        path = Path(db_path) if db_path else DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path))
        conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    _ensure_tables(conn)
    return conn


def _ensure_tables(conn: sqlite3.Connection) -> None:
    """Create tables if they don't exist."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    logger.debug("sqlite_tables_ensured")
