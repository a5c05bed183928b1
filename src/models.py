"""LLM factory and the text-completion adapter used by the pipeline.

The pipeline talks to an OpenAI-compatible chat endpoint (Gemini's OpenAI
compatibility layer by default) through LangChain's ChatOpenAI. Provider
retries are disabled here: the RetryableInvoker owns the retry policy.
Provider exceptions are mapped to CompletionError so the invoker can tell
client faults from transient ones.
"""

from __future__ import annotations

import openai
import structlog
from langchain_openai import ChatOpenAI

from src.config import Settings, get_screening_settings, get_settings
from src.errors import CompletionError

logger = structlog.get_logger(__name__)


def create_llm(
    stage_name: str,
    temperature: float,
    max_tokens: int | None = None,
    settings: Settings | None = None,
) -> ChatOpenAI:
    """Create a chat model for a pipeline stage.

    Args:
        stage_name: Stage identifier used to look up the model in screening.toml.
        temperature: Sampling temperature.
        max_tokens: Output length cap. None = read from screening.toml.
        settings: Optional Settings instance; loads from env if not provided.
    """
    if settings is None:
        settings = get_settings()

    screening_settings = get_screening_settings()
    if max_tokens is None:
        max_tokens = screening_settings.defaults.max_output_tokens

    return ChatOpenAI(
        model=screening_settings.get_model(stage_name),
        temperature=temperature,
        max_tokens=max_tokens,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=screening_settings.defaults.timeout,
        max_retries=0,
    )


def _content_text(content) -> str:  # noqa: ANN001
    if isinstance(content, str):
        return content
    # Some providers return a list of content blocks.
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ChatCompletionService:
    """TextCompletionService over a LangChain chat model.

    One client is kept per (temperature, max_output_tokens) pair so the
    pipeline's few distinct sampling settings reuse connections.
    """

    def __init__(self, stage_name: str = "default", settings: Settings | None = None) -> None:
        self._stage_name = stage_name
        self._settings = settings or get_settings()
        self._clients: dict[tuple[float, int], ChatOpenAI] = {}

    def _client(self, temperature: float, max_output_tokens: int) -> ChatOpenAI:
        key = (temperature, max_output_tokens)
        if key not in self._clients:
            self._clients[key] = create_llm(
                self._stage_name,
                temperature=temperature,
                max_tokens=max_output_tokens,
                settings=self._settings,
            )
        return self._clients[key]

    async def generate(self, prompt: str, temperature: float, max_output_tokens: int) -> str:
        llm = self._client(temperature, max_output_tokens)
        try:
            response = await llm.ainvoke(prompt)
        except openai.APIStatusError as exc:
            raise CompletionError(f"API Error: {exc.message}", status_code=exc.status_code) from exc
        except openai.APIError as exc:
            # Timeouts and connection failures carry no status and are retryable.
            raise CompletionError(str(exc)) from exc
        return _content_text(response.content)
