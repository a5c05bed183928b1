"""Shared test fixtures."""

from __future__ import annotations

import json
import os

import pytest

# Ensure tests don't accidentally call real APIs
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("EMBEDDING_API_KEY", "test-key")
os.environ.setdefault("QDRANT_URL", "http://localhost:6333")

from src.config import RetryConfig, ScreeningSettings  # noqa: E402
from src.persistence.repository import SQLiteJobStore  # noqa: E402
from src.pipeline.context import ContextAssembler  # noqa: E402
from src.pipeline.evaluation import EvaluationPipeline  # noqa: E402
from src.pipeline.invoker import RetryableInvoker  # noqa: E402


# ---------------------------------------------------------------------------
# Canned model output
# ---------------------------------------------------------------------------

CV_CRITERIA = ("technicalSkillsMatch", "experienceLevel", "relevantAchievements", "culturalFit")
PROJECT_CRITERIA = ("correctness", "codeQuality", "resilience", "documentation", "creativity")


def rubric_json(criteria: tuple[str, ...], score: int, details: str = "Solid evidence") -> str:
    return json.dumps({name: {"score": score, "details": details} for name in criteria})


def prompt_kind(prompt: str) -> str:
    """Classify a pipeline prompt as cv, project or summary."""
    if "evaluating a candidate's CV" in prompt:
        return "cv"
    if "project report for a case study" in prompt:
        return "project"
    if "summarizing the evaluation" in prompt:
        return "summary"
    raise AssertionError(f"unexpected prompt: {prompt[:80]}")


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class ScriptedCompletion:
    """TextCompletionService whose outcome is chosen per prompt.

    ``responses`` maps a prompt kind to a string, an exception, or a list
    of those consumed one per call (the last one repeats).
    """

    def __init__(self, responses: dict) -> None:
        self._responses = dict(responses)
        self.calls: list[tuple[str, float, int]] = []

    def calls_for(self, kind: str) -> int:
        return sum(1 for prompt, _, _ in self.calls if prompt_kind(prompt) == kind)

    async def generate(self, prompt: str, temperature: float, max_output_tokens: int) -> str:
        self.calls.append((prompt, temperature, max_output_tokens))
        outcome = self._responses[prompt_kind(prompt)]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeRetriever:
    """ContextRetriever returning fixed passages per document type."""

    def __init__(self, passages: dict[str, list[str]] | None = None, error: Exception | None = None):
        self._passages = passages
        self._error = error
        self.queries: list[tuple[str, str | None, str, int]] = []

    async def query(self, scope, text: str, top_n: int) -> list[str]:
        self.queries.append((scope.document_type, scope.document_id, text, top_n))
        if self._error is not None:
            raise self._error
        if self._passages is None:
            return [f"{scope.document_type} passage"]
        return list(self._passages.get(scope.document_type, []))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store():
    job_store = SQLiteJobStore.open(":memory:")
    yield job_store
    job_store.close()


@pytest.fixture()
def screening_settings() -> ScreeningSettings:
    return ScreeningSettings()


@pytest.fixture()
def make_pipeline(store, screening_settings):
    """Factory: build an EvaluationPipeline over the in-memory store and fakes."""

    def _make(completion, retriever=None, job_store=None) -> EvaluationPipeline:
        retry = RetryConfig(initial_interval=0.0, jitter=False)
        invoker = RetryableInvoker(completion, retry=retry)
        assembler = ContextAssembler(retriever or FakeRetriever())
        return EvaluationPipeline(
            job_store or store, assembler, invoker, settings=screening_settings
        )

    return _make
