"""
Live LLM provider checks.

These make real API calls and are skipped unless the matching key is set:
1. Gemini answers a plain prompt
2. OpenAI answers a plain prompt
3. The fallback client returns a validated structured result
"""

import os

import pytest

from src.config.settings import Settings
from src.llm.factory import build_llm_client
from src.llm.gemini_provider import GeminiProvider
from src.llm.openai_provider import OpenAIProvider
from src.llm.schemas import OptOutLLMResponse
from src.prompts import DETECT_OPT_OUT_SYSTEM, DETECT_OPT_OUT_USER


class TestLLMProviders:
    """Real provider integration."""

    @pytest.mark.skipif(not os.getenv("GEMINI_API_KEY"), reason="GEMINI_API_KEY not set")
    @pytest.mark.asyncio
    async def test_gemini_provider_real_call(self):
        settings = Settings()
        provider = GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_tokens=settings.gemini_max_tokens,
        )

        response = await provider.complete(
            system_prompt="You are a helpful assistant.",
            user_prompt="Reply with exactly: 'Gemini is working'",
            max_tokens=50,
        )

        assert response.content
        assert response.provider == "gemini"
        assert response.model == settings.gemini_model

    @pytest.mark.skipif(not os.getenv("OPENAI_API_KEY"), reason="OPENAI_API_KEY not set")
    @pytest.mark.asyncio
    async def test_openai_provider_real_call(self):
        settings = Settings()
        provider = OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
        )

        # Reasoning models may spend the whole budget before writing content
        response = await provider.complete(
            system_prompt="You are a helpful assistant.",
            user_prompt="Reply with exactly: 'OpenAI is working'",
            max_tokens=400,
        )

        assert response.provider == "openai"
        assert response.usage["total_tokens"] > 0

    @pytest.mark.skipif(
        not os.getenv("GEMINI_API_KEY") and not os.getenv("OPENAI_API_KEY"),
        reason="No API keys configured",
    )
    @pytest.mark.asyncio
    async def test_structured_opt_out_detection(self):
        """A plain 'stop emailing me' is detected through the structured path."""
        llm = build_llm_client(Settings())

        result = await llm.generate_structured(
            system_prompt=DETECT_OPT_OUT_SYSTEM,
            user_prompt=DETECT_OPT_OUT_USER.format(
                subject="Please stop", body="Stop emailing me. Remove me from your list."
            ),
            schema=OptOutLLMResponse,
            temperature=0.0,
        )

        assert isinstance(result, OptOutLLMResponse)
        assert result.is_opt_out is True

    @pytest.mark.skipif(
        not os.getenv("GEMINI_API_KEY") and not os.getenv("OPENAI_API_KEY"),
        reason="No API keys configured",
    )
    @pytest.mark.asyncio
    async def test_health_check(self):
        llm = build_llm_client(Settings())

        health = await llm.health_check()

        assert health["primary"]["status"] == "healthy" or health["fallback"]["status"] == "healthy"
