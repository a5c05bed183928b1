"""Repository functions for job persistence.

Each function takes a sqlite3.Connection and performs a single operation.
``SQLiteJobStore`` binds a connection to the functions so the pipeline and
scheduler can use it as their job store.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import structlog

from src.errors import InvalidTransitionError, JobNotFoundError
from src.persistence.db import get_connection
from src.schemas.evaluation import EvaluationResult
from src.schemas.jobs import ALLOWED_TRANSITIONS, Job, JobStatus

logger = structlog.get_logger(__name__)


def _now() -> str:
    """Return current UTC time in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _row_to_job(row: sqlite3.Row) -> Job:
    result = row["result"]
    return Job(
        id=row["id"],
        title=row["title"],
        cv_document_id=row["cv_document_id"],
        project_report_id=row["project_report_id"],
        status=JobStatus(row["status"]),
        progress=row["progress"],
        result=EvaluationResult.model_validate_json(result) if result else None,
        error=row["error"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def create_job(
    conn: sqlite3.Connection,
    job_id: str,
    title: str,
    cv_document_id: str,
    project_report_id: str,
) -> Job:
    """Insert a new job in the queued state and return it."""
    now = _now()
    conn.execute(
        """INSERT INTO jobs (id, title, cv_document_id, project_report_id,
           status, progress, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, 0, ?, ?)""",
        (job_id, title, cv_document_id, project_report_id,
         JobStatus.QUEUED.value, now, now),
    )
    conn.commit()
    logger.info("job_created", job_id=job_id, title=title)
    return get_job(conn, job_id)  # type: ignore[return-value]


def get_job(conn: sqlite3.Connection, job_id: str) -> Job | None:
    """Fetch a job by id."""
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row else None


def update_job_status(
    conn: sqlite3.Connection,
    job_id: str,
    status: JobStatus,
    progress: int | None = None,
    result: EvaluationResult | None = None,
    error: str | None = None,
) -> None:
    """Apply a status update in a single statement.

    The WHERE clause only matches rows whose current status may move to
    ``status``, so a terminal job is never modified. Progress only moves
    forward. A failed job keeps no result; only a failed job carries an error.
    """
    assignments = ["status = ?", "updated_at = ?"]
    params: list = [status.value, _now()]

    if progress is not None:
        assignments.append("progress = MAX(progress, ?)")
        params.append(progress)

    if status is JobStatus.FAILED:
        assignments += ["result = NULL", "error = ?"]
        params.append(error or "Unknown error")
    elif result is not None:
        assignments.append("result = ?")
        params.append(result.model_dump_json(by_alias=True))

    sources = [s.value for s, targets in ALLOWED_TRANSITIONS.items() if status in targets]
    placeholders = ", ".join("?" for _ in sources)
    params.append(job_id)
    params += sources

    cursor = conn.execute(
        f"UPDATE jobs SET {', '.join(assignments)} "
        f"WHERE id = ? AND status IN ({placeholders})",
        params,
    )
    conn.commit()

    if cursor.rowcount == 0:
        current = get_job(conn, job_id)
        if current is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        raise InvalidTransitionError(
            f"Job {job_id} cannot move from {current.status} to {status}"
        )
    logger.debug("job_status_updated", job_id=job_id, status=status.value, progress=progress)


def list_jobs(conn: sqlite3.Connection, status: JobStatus | None = None) -> list[Job]:
    """List jobs, newest first, optionally filtered by status."""
    query = "SELECT * FROM jobs"
    params: list = []
    if status is not None:
        query += " WHERE status = ?"
        params.append(status.value)
    query += " ORDER BY created_at DESC, rowid DESC"
    return [_row_to_job(row) for row in conn.execute(query, params).fetchall()]


# ---------------------------------------------------------------------------
# Store binding
# ---------------------------------------------------------------------------


class SQLiteJobStore:
    """Job store backed by a single SQLite connection.

    All calls run on the event loop thread; each method is one statement
    plus commit, so single-record updates are atomic.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    def open(cls, db_path: str | Path | None = None) -> SQLiteJobStore:
        return cls(get_connection(db_path))

    def create_job(
        self, job_id: str, title: str, cv_document_id: str, project_report_id: str
    ) -> Job:
        return create_job(self._conn, job_id, title, cv_document_id, project_report_id)

    def get_job(self, job_id: str) -> Job | None:
        return get_job(self._conn, job_id)

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: int | None = None,
        result: EvaluationResult | None = None,
        error: str | None = None,
    ) -> None:
        update_job_status(self._conn, job_id, status, progress, result, error)

    def list_jobs(self, status: JobStatus | None = None) -> list[Job]:
        return list_jobs(self._conn, status)

    def ping(self) -> bool:
        try:
            self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error:
            logger.warning("job_store_ping_failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self._conn.close()
