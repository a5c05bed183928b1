"""Exception types shared across the screening pipeline."""

from __future__ import annotations

# Client-fault statuses that will not succeed on retry.
NON_RETRYABLE_STATUS_CODES = frozenset({400, 401, 403})


class ScreeningError(Exception):
    """Base class for errors raised by the screening service."""


class CompletionError(ScreeningError):
    """A text-completion call failed.

    Args:
        message: Human-readable reason.
        status_code: HTTP status reported by the provider, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code not in NON_RETRYABLE_STATUS_CODES


class EmptyCompletionError(CompletionError):
    """The provider answered with empty or whitespace-only text."""

    def __init__(self) -> None:
        super().__init__("Empty response from LLM")


class JobNotFoundError(ScreeningError):
    """No job exists with the requested id."""


class InvalidTransitionError(ScreeningError):
    """A status update would leave a terminal state or skip a lifecycle step."""


class RetrievalError(ScreeningError):
    """The context retrieval service could not answer a query."""


class EvaluationStageError(ScreeningError):
    """A pipeline stage could not obtain a model response."""

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"{stage} failed: {reason}")
        self.stage = stage
        self.reason = reason
