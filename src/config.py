"""Application configuration using pydantic-settings.

Loads secrets and endpoints from environment variables and .env file.
Pipeline behavior (temperatures, attempts, retry delays, queue size) is loaded
from screening.toml.

Priority: CLI args > Environment variables (.env) > screening.toml > hardcoded defaults
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Pipeline settings from screening.toml
# ---------------------------------------------------------------------------


class StageConfig(BaseModel):
    """Sampling and retry budget for a single LLM stage."""

    model: str | None = None
    temperature: float = 0.2
    max_attempts: int = 3


class CVStageConfig(StageConfig):
    temperature: float = 0.2
    max_attempts: int = 3


class ProjectStageConfig(StageConfig):
    temperature: float = 0.2
    max_attempts: int = 3


class SummaryStageConfig(StageConfig):
    temperature: float = 0.4
    max_attempts: int = 2


class StagesTable(BaseModel):
    """The [stages] table from screening.toml."""

    cv: CVStageConfig = Field(default_factory=CVStageConfig)
    project: ProjectStageConfig = Field(default_factory=ProjectStageConfig)
    summary: SummaryStageConfig = Field(default_factory=SummaryStageConfig)


class DefaultsTable(BaseModel):
    """The [defaults] table from screening.toml."""

    model: str = "gemini-2.0-flash-001"
    timeout: float = 30.0
    max_output_tokens: int = 2000


class RetryConfig(BaseModel):
    """The [retry] table from screening.toml.

    Backoff for model calls, applied as a langgraph ``RetryPolicy``. The wait
    after failed attempt k is ``initial_interval * backoff_factor**(k-1)``
    seconds (capped at ``max_interval``), plus uniform(0, 1) s when ``jitter``.
    Attempt budgets are per stage.
    """

    initial_interval: float = 2.0
    backoff_factor: float = 2.0
    max_interval: float = 128.0
    jitter: bool = True


class RetrievalConfig(BaseModel):
    """The [retrieval] table from screening.toml."""

    top_n: int = 5
    timeout: float = 30.0
    documents_collection: str = "documents"
    reference_collection: str = "reference_documents"
    embedding_model: str = "text-embedding-3-small"
    embedding_size: int = 1536


class QueueConfig(BaseModel):
    """The [queue] table from screening.toml."""

    max_concurrent: int = Field(default=3, ge=1)


class RateLimitConfig(BaseModel):
    """The [rate_limit] table from screening.toml (per client, on submissions)."""

    enabled: bool = True
    requests_per_minute: int = Field(default=10, ge=1)
    requests_per_day: int = Field(default=100, ge=1)


class ScreeningSettings(BaseModel):
    """Configuration loaded from screening.toml."""

    defaults: DefaultsTable = Field(default_factory=DefaultsTable)
    stages: StagesTable = Field(default_factory=StagesTable)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    def get_stage_config(self, stage_name: str) -> StageConfig:
        """Get the config for a specific stage."""
        return getattr(self.stages, stage_name, StageConfig())

    def get_model(self, stage_name: str) -> str:
        """Get the resolved model for a stage (stage-specific > defaults)."""
        return self.get_stage_config(stage_name).model or self.defaults.model


_SCREENING_SETTINGS_CACHE: ScreeningSettings | None = None


def get_screening_settings() -> ScreeningSettings:
    """Load and cache pipeline settings from screening.toml."""
    global _SCREENING_SETTINGS_CACHE
    if _SCREENING_SETTINGS_CACHE is not None:
        return _SCREENING_SETTINGS_CACHE

    toml_path = Path(__file__).parent.parent / "screening.toml"
    if toml_path.exists():
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
        _SCREENING_SETTINGS_CACHE = ScreeningSettings.model_validate(data)
    else:
        _SCREENING_SETTINGS_CACHE = ScreeningSettings()

    return _SCREENING_SETTINGS_CACHE


# ---------------------------------------------------------------------------
# Environment settings from .env (API keys, endpoints, env-var overrides)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Text completion (any OpenAI-compatible endpoint; Gemini by default)
    llm_api_key: str
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"

    # Embeddings for the vector store
    embedding_api_key: str = ""
    embedding_base_url: str | None = None

    # Vector store
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None

    # Job store
    database_path: str = "data/screening.db"

    # Logging
    log_level: str = "INFO"

    # Overrides [queue].max_concurrent when set
    screening_max_concurrent: int | None = None


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
