"""LLM Provider factory with automatic fallback."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.api.errors import (
    ConfigurationError,
    LLMProviderError,
    LLMResponseInvalidError,
    LLMTimeoutError,
    NegotiationEngineError,
)
from src.config.settings import Settings
from src.utils import JSONExtractionError, extract_json, log_metric

from .base import BaseLLMProvider, LLMResponse
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

PROVIDER_NAMES = ("gemini", "openai")


def _create_provider(name: str, settings: Settings) -> BaseLLMProvider:
    if name == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_tokens=settings.gemini_max_tokens,
        )
    if name == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
        )
    raise ConfigurationError(f"Unknown LLM provider: {name}", setting="llm_provider")


class LLMProviderWithFallback:
    """
    LLM Provider with automatic fallback between Gemini and OpenAI.

    Providers are created lazily on first use. ``generate_structured`` is the
    entry point used by the engine: one timeout-bounded call returning a
    validated schema instance.
    """

    def __init__(
        self,
        settings: Settings,
        primary_provider: Optional[str] = None,
        fallback_provider: Optional[str] = None,
    ):
        self.settings = settings
        self.primary_provider_name = primary_provider or settings.llm_provider
        self.fallback_provider_name = fallback_provider
        self.timeout_seconds = settings.llm_timeout_seconds

        self._primary: Optional[BaseLLMProvider] = None
        self._fallback: Optional[BaseLLMProvider] = None
        self.fallback_count = 0

        logger.info(
            "LLM factory created with primary=%s, fallback=%s",
            self.primary_provider_name,
            self.fallback_provider_name,
        )

    @property
    def primary(self) -> BaseLLMProvider:
        """Lazy-initialize primary provider."""
        if self._primary is None:
            self._primary = _create_provider(self.primary_provider_name, self.settings)
        return self._primary

    @property
    def fallback(self) -> Optional[BaseLLMProvider]:
        """Lazy-initialize fallback provider."""
        if self._fallback is None and self.fallback_provider_name:
            try:
                self._fallback = _create_provider(self.fallback_provider_name, self.settings)
            except ValueError as e:
                logger.warning("Fallback provider unavailable: %s", e)
                self.fallback_provider_name = None
                return None
        return self._fallback

    @property
    def fallback_enabled(self) -> bool:
        return self.fallback_provider_name is not None

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs) -> LLMResponse:
        """
        Generate completion with automatic fallback.

        Tries primary provider first, falls back to secondary on failure.
        """
        try:
            response = await self.primary.complete(system_prompt, user_prompt, **kwargs)
            logger.info(
                "LLM request succeeded: provider=%s, model=%s, tokens=%s",
                response.provider,
                response.model,
                response.usage.get("total_tokens", 0),
            )
            return response
        except Exception as e:
            logger.error("Primary provider (%s) failed: %s", self.primary_provider_name, e)

            if not self.fallback_enabled or self.fallback is None:
                logger.error("No fallback provider configured, raising error")
                raise

            logger.warning("Falling back to %s", self.fallback.provider_name)
            self.fallback_count += 1
            log_metric("llm_provider_fallback", provider=self.fallback.provider_name)

            response = await self.fallback.complete(system_prompt, user_prompt, **kwargs)
            logger.info(
                "Fallback succeeded: provider=%s, model=%s, tokens=%s",
                response.provider,
                response.model,
                response.usage.get("total_tokens", 0),
            )
            return response

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        temperature: Optional[float] = None,
    ) -> SchemaT:
        """
        Ask the model for a JSON object matching ``schema``.

        Raises:
            LLMTimeoutError: no answer within ``llm_timeout_seconds``
            LLMProviderError: every configured provider failed
            LLMResponseInvalidError: the answer is not valid JSON for ``schema``
        """
        try:
            response = await asyncio.wait_for(
                self.complete(
                    system_prompt,
                    user_prompt,
                    temperature=temperature,
                    json_mode=True,
                    response_schema=schema,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(self.timeout_seconds) from e
        except NegotiationEngineError:
            raise
        except Exception as e:
            raise LLMProviderError(str(e), provider=self.primary_provider_name) from e

        try:
            raw_result = extract_json(response.content)
        except JSONExtractionError as e:
            raise LLMResponseInvalidError(
                message="LLM returned invalid JSON",
                details={
                    "error": str(e),
                    "raw_content": (e.raw_content or "")[:1000],
                    "extraction_attempts": e.attempts,
                },
            ) from e

        try:
            return schema.model_validate(raw_result)
        except ValidationError as e:
            logger.error(f"LLM response validation failed for {schema.__name__}: {e}")
            raise LLMResponseInvalidError(
                message=f"LLM returned invalid {schema.__name__}",
                details={"validation_errors": e.errors(), "raw_response": raw_result},
            ) from e

    async def health_check(self) -> Dict[str, Any]:
        """Check health of both providers."""
        primary_health = await self.primary.health_check()
        fallback_health = (
            await self.fallback.health_check() if self.fallback else {"status": "disabled"}
        )

        return {
            "primary": primary_health,
            "fallback": fallback_health,
            "fallback_count": self.fallback_count,
        }

    @property
    def provider_name(self) -> str:
        return self.primary.provider_name

    @property
    def model_name(self) -> str:
        return self.primary.model_name


def configured_providers(settings: Settings) -> List[str]:
    """Provider names that have an API key, preferred provider first."""
    if settings.llm_provider not in PROVIDER_NAMES:
        raise ConfigurationError(
            f"Unknown LLM provider: {settings.llm_provider}", setting="llm_provider"
        )
    keys = {"gemini": settings.gemini_api_key, "openai": settings.openai_api_key}
    ordered = [settings.llm_provider] + [p for p in PROVIDER_NAMES if p != settings.llm_provider]
    return [name for name in ordered if keys[name]]


def build_llm_client(settings: Settings) -> Optional[LLMProviderWithFallback]:
    """
    Create the text-generation client, or None when no provider is configured.

    With no client the engine runs entirely on its rule-based fallbacks,
    unless ``require_llm`` is set, in which case startup fails.
    """
    providers = configured_providers(settings)
    if not providers:
        if settings.require_llm:
            raise ConfigurationError(
                "require_llm is set but neither GEMINI_API_KEY nor OPENAI_API_KEY is configured",
                setting="require_llm",
            )
        logger.warning("No LLM provider configured; using rule-based fallbacks only")
        return None

    return LLMProviderWithFallback(
        settings,
        primary_provider=providers[0],
        fallback_provider=providers[1] if len(providers) > 1 else None,
    )
