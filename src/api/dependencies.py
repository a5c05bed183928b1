"""FastAPI dependency injection for the screening API.

The scheduler, job store, retriever and rate limiter are built once at
startup and injected into route handlers via FastAPI's Depends().
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from src.api.metrics import record_rate_limit_hit
from src.api.queue import JobScheduler
from src.api.rate_limiter import RateLimiter
from src.interfaces import JobStore


# ---------------------------------------------------------------------------
# Singleton instances (initialized in app lifespan)
# ---------------------------------------------------------------------------

_scheduler: JobScheduler | None = None
_store: JobStore | None = None
_retriever: object | None = None
_rate_limiter: RateLimiter | None = None


def init_dependencies(
    scheduler: JobScheduler,
    store: JobStore,
    retriever: object | None = None,
    rate_limiter: RateLimiter | None = None,
) -> None:
    """Initialize shared dependency instances. Called once at app startup."""
    global _scheduler, _store, _retriever, _rate_limiter
    _scheduler = scheduler
    _store = store
    _retriever = retriever
    _rate_limiter = rate_limiter


def reset_dependencies() -> None:
    global _scheduler, _store, _retriever, _rate_limiter
    _scheduler = None
    _store = None
    _retriever = None
    _rate_limiter = None


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_scheduler() -> JobScheduler:
    """Get the shared job scheduler instance."""
    if _scheduler is None:
        raise HTTPException(status_code=500, detail="Scheduler not initialized")
    return _scheduler


def get_store() -> JobStore:
    """Get the shared job store instance."""
    if _store is None:
        raise HTTPException(status_code=500, detail="Job store not initialized")
    return _store


def get_retriever() -> object | None:
    """Get the retrieval adapter, if one was configured."""
    return _retriever


def client_id(request: Request) -> str:
    """Rate-limit key for a request: the client address."""
    return request.client.host if request.client else "unknown"


async def check_rate_limit(request: Request) -> None:
    """Check per-client submission limits. Raises 429 if exceeded."""
    if _rate_limiter is None:
        return

    allowed, retry_after = _rate_limiter.check(client_id(request))
    if not allowed:
        record_rate_limit_hit("request_rate")
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(int(retry_after) + 1)},
        )
