"""Rubric schemas for model output and the persisted evaluation result.

Model responses are decoded strictly into these models. Scores are coerced
into the 1-5 rubric range and missing criteria fall back to a neutral score,
so a structurally valid but sloppy response still yields a usable evaluation.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_SCORE = 1
MAX_SCORE = 5
NEUTRAL_SCORE = 3

NO_DETAILS = "No details provided"
PARSING_FAILED = "parsing failed"

# Rubric weights. Keys are the criterion names used in prompts and results.
CV_WEIGHTS: dict[str, float] = {
    "technicalSkillsMatch": 0.40,
    "experienceLevel": 0.25,
    "relevantAchievements": 0.20,
    "culturalFit": 0.15,
}

PROJECT_WEIGHTS: dict[str, float] = {
    "correctness": 0.30,
    "codeQuality": 0.25,
    "resilience": 0.20,
    "documentation": 0.15,
    "creativity": 0.10,
}


def coerce_score(value: Any) -> float:
    """Coerce a raw score into the rubric range without rounding.

    Out-of-range values go to the nearest bound. Missing or unparseable
    values (including booleans and NaN) become the neutral midpoint.
    """
    if value is None or isinstance(value, bool):
        return float(NEUTRAL_SCORE)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float(NEUTRAL_SCORE)
    if math.isnan(number):
        return float(NEUTRAL_SCORE)
    return max(float(MIN_SCORE), min(float(MAX_SCORE), number))


def clamp_score(value: Any) -> int:
    """Integer rubric rating for ``value``, rounded after coercion."""
    return int(round(coerce_score(value)))


class CriterionScore(BaseModel):
    score: int = NEUTRAL_SCORE
    details: str = NO_DETAILS

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)

    @field_validator("details", mode="before")
    @classmethod
    def _details_text(cls, value: Any) -> str:
        if value is None:
            return NO_DETAILS
        text = str(value).strip()
        return text or NO_DETAILS


class RubricEvaluation(BaseModel):
    """Shared behavior for fixed-criteria rubric evaluations."""

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _normalize_criteria(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("evaluation must be a JSON object")
        normalized = dict(data)
        for name, field in cls.model_fields.items():
            key = field.alias or name
            if key not in normalized or isinstance(normalized[key], dict):
                continue
            raw = normalized[key]
            # A bare number is read as the score itself.
            normalized[key] = {"score": raw} if isinstance(raw, (int, float, str)) else {}
        return normalized

    def criteria(self) -> dict[str, CriterionScore]:
        """Return criterion name -> score, keyed by rubric name."""
        return {
            field.alias or name: getattr(self, name)
            for name, field in type(self).model_fields.items()
        }

    @classmethod
    def neutral(cls, details: str = PARSING_FAILED):
        """Evaluation used when the model output cannot be decoded."""
        return cls.model_validate(
            {
                field.alias or name: {"score": NEUTRAL_SCORE, "details": details}
                for name, field in cls.model_fields.items()
            }
        )


class CVEvaluation(RubricEvaluation):
    technical_skills_match: CriterionScore = Field(
        default_factory=CriterionScore, alias="technicalSkillsMatch"
    )
    experience_level: CriterionScore = Field(
        default_factory=CriterionScore, alias="experienceLevel"
    )
    relevant_achievements: CriterionScore = Field(
        default_factory=CriterionScore, alias="relevantAchievements"
    )
    cultural_fit: CriterionScore = Field(
        default_factory=CriterionScore, alias="culturalFit"
    )


class ProjectEvaluation(RubricEvaluation):
    correctness: CriterionScore = Field(default_factory=CriterionScore)
    code_quality: CriterionScore = Field(
        default_factory=CriterionScore, alias="codeQuality"
    )
    resilience: CriterionScore = Field(default_factory=CriterionScore)
    documentation: CriterionScore = Field(default_factory=CriterionScore)
    creativity: CriterionScore = Field(default_factory=CriterionScore)


class FinalScore(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cv_score: float = Field(default=0.0, alias="cvScore")
    project_score: float = Field(default=0.0, alias="projectScore")
    overall_score: float = Field(default=0.0, alias="overallScore")


class EvaluationResult(BaseModel):
    """Result stored on a job.

    While the job is processing, ``project_evaluation`` is None and the
    scores are zero: only the CV stage has finished.
    """

    model_config = ConfigDict(populate_by_name=True)

    cv_evaluation: CVEvaluation = Field(alias="cvEvaluation")
    project_evaluation: ProjectEvaluation | None = Field(
        default=None, alias="projectEvaluation"
    )
    overall_summary: str = Field(default="", alias="overallSummary")
    final_score: FinalScore = Field(default_factory=FinalScore, alias="finalScore")

    @property
    def is_partial(self) -> bool:
        return self.project_evaluation is None
