"""Tests for evaluation and job schemas."""

from __future__ import annotations

import json

import pytest

from conftest import CV_CRITERIA, PROJECT_CRITERIA, rubric_json
from src.pipeline.evaluation import decode_evaluation, format_criteria
from src.schemas.evaluation import (
    NO_DETAILS,
    PARSING_FAILED,
    CVEvaluation,
    EvaluationResult,
    ProjectEvaluation,
    clamp_score,
)
from src.schemas.jobs import ALLOWED_TRANSITIONS, Job, JobStatus


class TestClampScore:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (1, 1), (5, 5), (0, 1), (7, 5), (3.4, 3), (3.6, 4), ("4", 4),
            (None, 3), ("", 3), (True, 3), (float("nan"), 3),
        ],
    )
    def test_clamp(self, raw, expected: int):
        assert clamp_score(raw) == expected


class TestRubricEvaluation:
    def test_valid_cv_payload(self):
        cv = CVEvaluation.model_validate(json.loads(rubric_json(CV_CRITERIA, 4)))
        assert cv.technical_skills_match.score == 4
        assert cv.cultural_fit.details == "Solid evidence"
        assert set(cv.criteria()) == set(CV_CRITERIA)

    def test_missing_criteria_default_to_neutral(self):
        cv = CVEvaluation.model_validate({"technicalSkillsMatch": {"score": 5, "details": "Great"}})
        assert cv.technical_skills_match.score == 5
        assert cv.experience_level.score == 3
        assert cv.experience_level.details == NO_DETAILS

    def test_missing_details_default(self):
        project = ProjectEvaluation.model_validate({"correctness": {"score": 2}})
        assert project.correctness.details == NO_DETAILS

    def test_blank_details_default(self):
        project = ProjectEvaluation.model_validate({"correctness": {"score": 2, "details": "  "}})
        assert project.correctness.details == NO_DETAILS

    def test_bare_number_is_score(self):
        project = ProjectEvaluation.model_validate({"codeQuality": 5, "resilience": "2"})
        assert project.code_quality.score == 5
        assert project.resilience.score == 2

    def test_out_of_range_scores_clamped(self):
        project = ProjectEvaluation.model_validate(
            {"correctness": {"score": 11}, "creativity": {"score": -1}}
        )
        assert project.correctness.score == 5
        assert project.creativity.score == 1

    def test_non_object_rejected(self):
        with pytest.raises(ValueError):
            CVEvaluation.model_validate(["not", "an", "object"])

    def test_neutral(self):
        project = ProjectEvaluation.neutral()
        assert {c.score for c in project.criteria().values()} == {3}
        assert {c.details for c in project.criteria().values()} == {PARSING_FAILED}

    def test_serializes_with_rubric_names(self):
        dumped = CVEvaluation.neutral().model_dump(by_alias=True)
        assert set(dumped) == set(CV_CRITERIA)


class TestDecodeEvaluation:
    def test_plain_json(self):
        project = decode_evaluation(rubric_json(PROJECT_CRITERIA, 4), ProjectEvaluation)
        assert project.documentation.score == 4

    def test_fenced_json(self):
        text = f"Here you go:\n```json\n{rubric_json(CV_CRITERIA, 5)}\n```"
        cv = decode_evaluation(text, CVEvaluation)
        assert cv.experience_level.score == 5

    @pytest.mark.parametrize("text", ["I cannot evaluate this.", "{broken json", "[1, 2, 3]", "42"])
    def test_unparseable_yields_neutral(self, text: str):
        cv = decode_evaluation(text, CVEvaluation)
        assert all(c.score == 3 for c in cv.criteria().values())
        assert all(c.details == PARSING_FAILED for c in cv.criteria().values())

    def test_format_criteria_lists_each_criterion(self):
        cv = CVEvaluation.model_validate(json.loads(rubric_json(CV_CRITERIA, 4, "Good")))
        lines = format_criteria(cv).splitlines()
        assert lines[0] == "- Technical Skills Match: 4/5 - Good"
        assert len(lines) == len(CV_CRITERIA)


class TestEvaluationResult:
    def test_partial_result(self):
        result = EvaluationResult(cv_evaluation=CVEvaluation.neutral())
        assert result.is_partial is True
        assert result.final_score.overall_score == 0.0
        dumped = result.model_dump(by_alias=True)
        assert dumped["projectEvaluation"] is None
        assert dumped["finalScore"] == {"cvScore": 0.0, "projectScore": 0.0, "overallScore": 0.0}

    def test_round_trips_through_json(self):
        result = EvaluationResult(
            cv_evaluation=CVEvaluation.neutral(),
            project_evaluation=ProjectEvaluation.neutral(),
            overall_summary="Fine.",
        )
        restored = EvaluationResult.model_validate_json(result.model_dump_json(by_alias=True))
        assert restored == result
        assert restored.is_partial is False


class TestJobStatus:
    def test_terminal_states(self):
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.QUEUED.is_terminal
        assert not JobStatus.PROCESSING.is_terminal

    def test_terminal_states_have_no_transitions(self):
        assert ALLOWED_TRANSITIONS[JobStatus.COMPLETED] == frozenset()
        assert ALLOWED_TRANSITIONS[JobStatus.FAILED] == frozenset()

    def test_queued_only_moves_to_processing(self):
        assert ALLOWED_TRANSITIONS[JobStatus.QUEUED] == frozenset({JobStatus.PROCESSING})

    def test_queued_cannot_complete_directly(self):
        assert JobStatus.COMPLETED not in ALLOWED_TRANSITIONS[JobStatus.QUEUED]

    def test_job_defaults(self):
        job = Job(id="j1", title="Backend Engineer", cv_document_id="cv1", project_report_id="p1")
        assert job.status is JobStatus.QUEUED
        assert job.progress == 0
        assert job.result is None
        assert job.error is None
        assert job.is_terminal is False

    def test_progress_bounds(self):
        with pytest.raises(ValueError):
            Job(id="j1", title="t", cv_document_id="c", project_report_id="p", progress=101)
