"""Pipeline stage definitions and their progress checkpoints."""

from __future__ import annotations

from enum import StrEnum


class Stage(StrEnum):
    """Canonical stage names for the evaluation pipeline."""

    STARTED = "started"
    CV_EVALUATION = "cv_evaluation"
    CV_CHECKPOINT = "cv_checkpoint"
    PROJECT_EVALUATION = "project_evaluation"
    SUMMARY = "summary"
    FINALIZED = "finalized"


# Progress written to the job record when each stage begins.
STAGE_PROGRESS: dict[Stage, int] = {
    Stage.STARTED: 10,
    Stage.CV_EVALUATION: 20,
    Stage.CV_CHECKPOINT: 50,
    Stage.PROJECT_EVALUATION: 60,
    Stage.SUMMARY: 80,
    Stage.FINALIZED: 100,
}
