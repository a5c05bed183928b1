"""Tests for the API layer: request/response schemas and HTTP endpoints."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import pytest_asyncio
from pydantic import ValidationError

from src.api.app import app
from src.api.dependencies import init_dependencies, reset_dependencies
from src.api.queue import JobScheduler
from src.api.rate_limiter import RateLimiter, _TokenBucket
from src.api.schemas import (
    EvaluateRequest,
    EvaluationAcceptedResponse,
    HealthResponse,
    JobStatusResponse,
)
from src.schemas.evaluation import CVEvaluation, EvaluationResult
from src.schemas.jobs import JobStatus


class GatedPipeline:
    """Completes each job with a partial result once ``release`` is set."""

    def __init__(self, store) -> None:
        self.store = store
        self.release = asyncio.Event()

    async def process(self, job):
        self.store.update_job_status(job.id, JobStatus.PROCESSING, progress=10)
        await self.release.wait()
        result = EvaluationResult(cv_evaluation=CVEvaluation.neutral())
        self.store.update_job_status(job.id, JobStatus.COMPLETED, progress=100, result=result)
        return result


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class PingingRetriever:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy

    async def ping(self) -> bool:
        return self.healthy


@pytest.fixture()
def pipeline(store):
    return GatedPipeline(store)


@pytest.fixture()
def scheduler(store, pipeline):
    return JobScheduler(pipeline, store, max_concurrent=1)


@pytest_asyncio.fixture
async def client(scheduler, store):
    init_dependencies(scheduler, store, PingingRetriever())
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    await scheduler.shutdown()
    reset_dependencies()


@pytest_asyncio.fixture
async def limited_client(scheduler, store):
    limiter = RateLimiter(requests_per_minute=2, requests_per_day=100, clock=FakeClock())
    init_dependencies(scheduler, store, PingingRetriever(), limiter)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    await scheduler.shutdown()
    reset_dependencies()


def _body(title: str = "Backend Engineer") -> dict:
    return {"jobTitle": title, "cvDocumentId": "cv-123", "projectReportId": "proj-456"}


# ===========================================================================
# Schema Tests
# ===========================================================================


class TestSchemas:
    def test_evaluate_request_aliases(self):
        req = EvaluateRequest.model_validate(_body())
        assert req.job_title == "Backend Engineer"
        assert req.cv_document_id == "cv-123"
        assert req.project_report_id == "proj-456"

    def test_evaluate_request_by_field_name(self):
        req = EvaluateRequest(job_title="t", cv_document_id="c", project_report_id="p")
        assert req.job_title == "t"

    @pytest.mark.parametrize("field", ["jobTitle", "cvDocumentId", "projectReportId"])
    def test_evaluate_request_rejects_empty(self, field: str):
        body = _body()
        body[field] = ""
        with pytest.raises(ValidationError):
            EvaluateRequest.model_validate(body)

    def test_evaluate_request_rejects_long_title(self):
        with pytest.raises(ValidationError):
            EvaluateRequest.model_validate(_body("x" * 201))

    def test_accepted_response_defaults(self):
        resp = EvaluationAcceptedResponse(job_id="abc")
        assert resp.status == "queued"
        assert "job_id" in resp.message

    def test_health_response_defaults(self):
        health = HealthResponse()
        assert health.status == "healthy"
        assert health.retrieval_connected is None

    def test_job_status_from_job(self, store):
        job = store.create_job("j1", "Backend Engineer", "cv1", "proj1")
        resp = JobStatusResponse.from_job(job)
        assert resp.job_id == "j1"
        assert resp.status == "queued"
        assert resp.progress == 0
        assert resp.result is None


# ===========================================================================
# Rate Limiter Tests
# ===========================================================================


class TestTokenBucket:
    def test_initial_tokens(self):
        bucket = _TokenBucket(capacity=5.0, refill_rate=1.0)
        assert bucket.tokens == 5.0

    def test_consume_depleted(self):
        bucket = _TokenBucket(capacity=2.0, refill_rate=0.0)  # No refill
        assert bucket.consume() is True
        assert bucket.consume() is True
        assert bucket.consume() is False

    def test_refill_over_time(self):
        clock = FakeClock()
        bucket = _TokenBucket(capacity=2.0, refill_rate=1.0, clock=clock)
        bucket.consume()
        bucket.consume()
        assert bucket.consume() is False
        clock.now += 1.0
        assert bucket.consume() is True

    def test_retry_after(self):
        clock = FakeClock()
        bucket = _TokenBucket(capacity=1.0, refill_rate=0.5, clock=clock)
        bucket.consume()
        assert bucket.retry_after == 2.0


class TestRateLimiter:
    def test_allows_within_limit(self):
        limiter = RateLimiter(requests_per_minute=5, requests_per_day=100)
        for _ in range(5):
            allowed, _ = limiter.check("10.0.0.1")
            assert allowed is True

    def test_blocks_over_minute_limit(self):
        limiter = RateLimiter(requests_per_minute=2, requests_per_day=100, clock=FakeClock())
        limiter.check("10.0.0.1")
        limiter.check("10.0.0.1")
        allowed, retry_after = limiter.check("10.0.0.1")
        assert allowed is False
        assert retry_after == pytest.approx(30.0)

    def test_separate_clients(self):
        limiter = RateLimiter(requests_per_minute=1, requests_per_day=100)
        assert limiter.check("10.0.0.1")[0] is True
        assert limiter.check("10.0.0.2")[0] is True

    def test_daily_limit(self):
        limiter = RateLimiter(requests_per_minute=1000, requests_per_day=3, clock=FakeClock())
        for _ in range(3):
            limiter.check("10.0.0.1")
        allowed, _ = limiter.check("10.0.0.1")
        assert allowed is False

    def test_minute_rejection_keeps_daily_quota(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=1, requests_per_day=2, clock=clock)
        assert limiter.check("10.0.0.1")[0] is True
        assert limiter.check("10.0.0.1")[0] is False
        clock.now += 61.0
        assert limiter.check("10.0.0.1")[0] is True

    def test_minute_bucket_refills(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=2, requests_per_day=100, clock=clock)
        limiter.check("10.0.0.1")
        limiter.check("10.0.0.1")
        clock.now += 31.0
        assert limiter.check("10.0.0.1")[0] is True


# ===========================================================================
# Endpoint Tests
# ===========================================================================


class TestEvaluateEndpoint:
    @pytest.mark.asyncio
    async def test_submit_returns_202(self, client, scheduler):
        resp = await client.post("/api/v1/evaluate", json=_body())
        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "queued"
        assert scheduler.get_job(data["job_id"]) is not None

    @pytest.mark.asyncio
    async def test_missing_field_is_422(self, client):
        resp = await client.post("/api/v1/evaluate", json={"jobTitle": "Backend Engineer"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_closed_scheduler_is_503(self, client, scheduler):
        await scheduler.shutdown()
        resp = await client.post("/api/v1/evaluate", json=_body())
        assert resp.status_code == 503


class TestEvaluateRateLimit:
    @pytest.mark.asyncio
    async def test_over_limit_is_429(self, limited_client, store):
        for _ in range(2):
            resp = await limited_client.post("/api/v1/evaluate", json=_body())
            assert resp.status_code == 202

        resp = await limited_client.post("/api/v1/evaluate", json=_body())
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) >= 30
        assert len(store.list_jobs()) == 2

    @pytest.mark.asyncio
    async def test_reads_are_not_limited(self, limited_client):
        for _ in range(5):
            resp = await limited_client.get("/api/v1/jobs")
            assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_rejections_are_counted(self, limited_client):
        for _ in range(3):
            await limited_client.post("/api/v1/evaluate", json=_body())
        metrics = (await limited_client.get("/api/v1/metrics")).text
        assert 'screening_rate_limit_hits_total{limit_type="request_rate"}' in metrics


class TestJobEndpoints:
    @pytest.mark.asyncio
    async def test_get_job_progress_then_result(self, client, pipeline, scheduler):
        job_id = (await client.post("/api/v1/evaluate", json=_body())).json()["job_id"]

        await asyncio.sleep(0)
        resp = await client.get(f"/api/v1/jobs/{job_id}")
        assert resp.status_code == 200
        assert resp.json()["status"] in {"queued", "processing"}

        pipeline.release.set()
        await scheduler.join()

        data = (await client.get(f"/api/v1/jobs/{job_id}")).json()
        assert data["status"] == "completed"
        assert data["progress"] == 100
        assert data["error"] is None
        assert "technicalSkillsMatch" in data["result"]["cvEvaluation"]

    @pytest.mark.asyncio
    async def test_get_unknown_job_is_404(self, client):
        resp = await client.get("/api/v1/jobs/does-not-exist")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_list_jobs(self, client):
        for title in ("First", "Second", "Third"):
            await client.post("/api/v1/evaluate", json=_body(title))

        data = (await client.get("/api/v1/jobs", params={"page_size": 2})).json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert [job["title"] for job in data["jobs"]] == ["Third", "Second"]

    @pytest.mark.asyncio
    async def test_list_jobs_by_status(self, client):
        await client.post("/api/v1/evaluate", json=_body("First"))
        await client.post("/api/v1/evaluate", json=_body("Second"))
        await asyncio.sleep(0)

        data = (await client.get("/api/v1/jobs", params={"status": "queued"})).json()
        assert [job["title"] for job in data["jobs"]] == ["Second"]

    @pytest.mark.asyncio
    async def test_list_jobs_rejects_bad_page(self, client):
        resp = await client.get("/api/v1/jobs", params={"page": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_list_jobs_rejects_unknown_status(self, client):
        resp = await client.get("/api/v1/jobs", params={"status": "paused"})
        assert resp.status_code == 422


class TestHealthAndMetrics:
    @pytest.mark.asyncio
    async def test_health(self, client):
        data = (await client.get("/api/v1/health")).json()
        assert data["status"] == "healthy"
        assert data["db_connected"] is True
        assert data["retrieval_connected"] is True
        assert data["max_concurrent"] == 1
        assert data["queue_depth"] == 0
        assert data["admission_paused"] is False

    @pytest.mark.asyncio
    async def test_health_reports_paused_admission(self, client, scheduler):
        scheduler.pause()
        await client.post("/api/v1/evaluate", json=_body())

        data = (await client.get("/api/v1/health")).json()
        assert data["admission_paused"] is True
        assert data["queue_depth"] == 1
        assert data["active_workers"] == 0

    @pytest.mark.asyncio
    async def test_health_degraded_when_db_down(self, client, store):
        store.close()
        data = (await client.get("/api/v1/health")).json()
        assert data["status"] == "degraded"
        assert data["db_connected"] is False

    @pytest.mark.asyncio
    async def test_metrics(self, client):
        await client.post("/api/v1/evaluate", json=_body())
        resp = await client.get("/api/v1/metrics")
        assert resp.status_code == 200
        assert "screening_jobs_submitted_total" in resp.text
        assert "screening_queue_depth" in resp.text
