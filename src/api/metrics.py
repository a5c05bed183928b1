"""Prometheus metrics for the screening API.

Tracks submitted and finished evaluations, queue depth, active workers and
rate-limit rejections.
Metrics are exposed via /api/v1/metrics endpoint in Prometheus format.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, generate_latest


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

JOBS_SUBMITTED = Counter(
    "screening_jobs_submitted_total",
    "Total evaluation jobs submitted",
)
JOBS_FINISHED = Counter(
    "screening_jobs_finished_total",
    "Total evaluation jobs that reached a terminal state",
    ["status"],
)
QUEUE_DEPTH = Gauge(
    "screening_queue_depth",
    "Current number of jobs waiting for a slot",
)
ACTIVE_WORKERS = Gauge(
    "screening_active_workers",
    "Currently executing evaluation jobs",
)
RATE_LIMIT_HITS = Counter(
    "screening_rate_limit_hits_total",
    "Submissions rejected by the rate limiter",
    ["limit_type"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_job_submitted() -> None:
    JOBS_SUBMITTED.inc()


def record_job_finished(status: str) -> None:
    JOBS_FINISHED.labels(status=status).inc()


def set_queue_depth(depth: int) -> None:
    QUEUE_DEPTH.set(depth)


def set_active_workers(count: int) -> None:
    ACTIVE_WORKERS.set(count)


def record_rate_limit_hit(limit_type: str) -> None:
    RATE_LIMIT_HITS.labels(limit_type=limit_type).inc()


def get_metrics_text() -> str:
    """Generate Prometheus metrics text output."""
    return generate_latest().decode("utf-8")
