"""Tests for the LLM factory and the chat completion adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage
from langchain_openai import ChatOpenAI

from src.config import ScreeningSettings, Settings
from src.errors import CompletionError
from src.models import ChatCompletionService, create_llm

_REQUEST = httpx.Request("POST", "https://llm.test/v1/chat/completions")


def _make_settings(**overrides) -> Settings:
    defaults = {"llm_api_key": "test-key", "llm_base_url": "https://llm.test/v1/"}
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _status_error(status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return openai.APIStatusError(f"status {status}", response=response, body=None)


def _fake_llm(**kwargs) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(**kwargs)
    return llm


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateLLM:
    def test_uses_stage_model_and_sampling(self):
        screening = ScreeningSettings.model_validate(
            {"defaults": {"model": "base-model", "timeout": 12.0}, "stages": {"cv": {"model": "cv-model"}}}
        )
        with patch("src.models.get_screening_settings", return_value=screening):
            llm = create_llm("cv", temperature=0.2, max_tokens=500, settings=_make_settings())

        assert isinstance(llm, ChatOpenAI)
        assert llm.model_name == "cv-model"
        assert llm.temperature == 0.2
        assert llm.max_tokens == 500
        assert llm.max_retries == 0

    def test_defaults_from_screening_toml(self):
        screening = ScreeningSettings.model_validate({"defaults": {"max_output_tokens": 1234}})
        with patch("src.models.get_screening_settings", return_value=screening):
            llm = create_llm("summary", temperature=0.4, settings=_make_settings())

        assert llm.max_tokens == 1234
        assert llm.model_name == screening.defaults.model


# ---------------------------------------------------------------------------
# Completion adapter
# ---------------------------------------------------------------------------


class TestChatCompletionService:
    @pytest.mark.asyncio
    async def test_returns_message_text(self):
        llm = _fake_llm(return_value=AIMessage(content="hello"))
        with patch("src.models.create_llm", return_value=llm) as factory:
            service = ChatCompletionService(settings=_make_settings())
            assert await service.generate("prompt", 0.2, 2000) == "hello"
            assert await service.generate("again", 0.2, 2000) == "hello"

        factory.assert_called_once()
        llm.ainvoke.assert_awaited_with("again")

    @pytest.mark.asyncio
    async def test_one_client_per_sampling_setting(self):
        llm = _fake_llm(return_value=AIMessage(content="x"))
        with patch("src.models.create_llm", return_value=llm) as factory:
            service = ChatCompletionService(settings=_make_settings())
            await service.generate("p", 0.2, 2000)
            await service.generate("p", 0.4, 2000)

        assert factory.call_count == 2

    @pytest.mark.asyncio
    async def test_joins_content_blocks(self):
        content = [{"type": "text", "text": "part one, "}, {"type": "image"}, "part two"]
        llm = _fake_llm(return_value=AIMessage(content=content))
        with patch("src.models.create_llm", return_value=llm):
            service = ChatCompletionService(settings=_make_settings())
            assert await service.generate("p", 0.2, 100) == "part one, part two"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, retryable", [(401, False), (400, False), (429, True), (503, True)])
    async def test_status_errors_carry_code(self, status: int, retryable: bool):
        llm = _fake_llm(side_effect=_status_error(status))
        with patch("src.models.create_llm", return_value=llm):
            service = ChatCompletionService(settings=_make_settings())
            with pytest.raises(CompletionError) as exc_info:
                await service.generate("p", 0.2, 100)

        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable
        assert str(exc_info.value).startswith("API Error:")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [openai.APITimeoutError(request=_REQUEST), openai.APIConnectionError(request=_REQUEST)],
    )
    async def test_transport_errors_are_retryable(self, error):
        llm = _fake_llm(side_effect=error)
        with patch("src.models.create_llm", return_value=llm):
            service = ChatCompletionService(settings=_make_settings())
            with pytest.raises(CompletionError) as exc_info:
                await service.generate("p", 0.2, 100)

        assert exc_info.value.status_code is None
        assert exc_info.value.retryable is True
