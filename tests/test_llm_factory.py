"""Tests for the LLM client factory and structured generation."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.errors import (
    ConfigurationError,
    LLMProviderError,
    LLMResponseInvalidError,
    LLMTimeoutError,
)
from src.config.settings import Settings
from src.llm.base import LLMResponse
from src.llm.factory import LLMProviderWithFallback, build_llm_client, configured_providers
from src.llm.schemas import OptOutLLMResponse


def _make_llm_response(content, provider: str = "test", tokens: int = 100) -> LLMResponse:
    """Helper to create mock LLMResponse objects."""
    return LLMResponse(
        content=content if isinstance(content, str) else json.dumps(content),
        model="test-model",
        provider=provider,
        usage={"total_tokens": tokens},
    )


def _provider(name: str, **complete_kwargs) -> MagicMock:
    provider = MagicMock()
    provider.provider_name = name
    provider.complete = AsyncMock(**complete_kwargs)
    return provider


def _settings(**overrides) -> Settings:
    values = {"gemini_api_key": None, "openai_api_key": None, "require_llm": False}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestBuildLLMClient:
    def test_no_keys_means_no_client(self):
        assert build_llm_client(_settings()) is None

    def test_require_llm_without_keys_fails(self):
        with pytest.raises(ConfigurationError):
            build_llm_client(_settings(require_llm=True))

    def test_preferred_provider_first(self):
        settings = _settings(gemini_api_key="g", openai_api_key="o", llm_provider="openai")

        assert configured_providers(settings) == ["openai", "gemini"]

        client = build_llm_client(settings)
        assert client.primary_provider_name == "openai"
        assert client.fallback_provider_name == "gemini"

    def test_single_key_has_no_fallback(self):
        client = build_llm_client(_settings(openai_api_key="o"))

        assert client.primary_provider_name == "openai"
        assert client.fallback_enabled is False


class TestGenerateStructured:
    @pytest.fixture
    def client(self) -> LLMProviderWithFallback:
        return LLMProviderWithFallback(_settings(gemini_api_key="g"), primary_provider="gemini")

    @pytest.mark.asyncio
    async def test_returns_validated_schema(self, client):
        client._primary = _provider(
            "gemini",
            return_value=_make_llm_response({"is_opt_out": True, "confidence": 0.9}),
        )

        result = await client.generate_structured("sys", "user", OptOutLLMResponse)

        assert isinstance(result, OptOutLLMResponse)
        assert result.is_opt_out is True
        kwargs = client._primary.complete.call_args.kwargs
        assert kwargs["response_schema"] is OptOutLLMResponse
        assert kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_fenced_json_accepted(self, client):
        client._primary = _provider(
            "gemini",
            return_value=_make_llm_response('```json\n{"is_opt_out": false, "confidence": 0.1}\n```'),
        )

        result = await client.generate_structured("sys", "user", OptOutLLMResponse)

        assert result.is_opt_out is False

    @pytest.mark.asyncio
    async def test_invalid_json(self, client):
        client._primary = _provider("gemini", return_value=_make_llm_response("not json at all"))

        with pytest.raises(LLMResponseInvalidError) as exc_info:
            await client.generate_structured("sys", "user", OptOutLLMResponse)

        assert "raw_content" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_schema_mismatch(self, client):
        client._primary = _provider(
            "gemini", return_value=_make_llm_response({"is_opt_out": "maybe", "confidence": 3})
        )

        with pytest.raises(LLMResponseInvalidError):
            await client.generate_structured("sys", "user", OptOutLLMResponse)

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        client._primary = _provider("gemini", side_effect=slow)
        client.timeout_seconds = 0.01

        with pytest.raises(LLMTimeoutError):
            await client.generate_structured("sys", "user", OptOutLLMResponse)

    @pytest.mark.asyncio
    async def test_provider_error_without_fallback(self, client):
        client._primary = _provider("gemini", side_effect=RuntimeError("quota exceeded"))

        with pytest.raises(LLMProviderError):
            await client.generate_structured("sys", "user", OptOutLLMResponse)

    @pytest.mark.asyncio
    async def test_fallback_provider_used(self):
        client = LLMProviderWithFallback(
            _settings(gemini_api_key="g", openai_api_key="o"),
            primary_provider="gemini",
            fallback_provider="openai",
        )
        client._primary = _provider("gemini", side_effect=RuntimeError("503"))
        client._fallback = _provider(
            "openai",
            return_value=_make_llm_response(
                {"is_opt_out": False, "confidence": 0.2}, provider="openai"
            ),
        )

        result = await client.generate_structured("sys", "user", OptOutLLMResponse)

        assert result.is_opt_out is False
        assert client.fallback_count == 1
