"""Base LLM provider abstraction."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel


class LLMResponse(BaseModel):
    """Standardized LLM response across all providers."""

    content: str
    model: str
    provider: str  # "openai", "gemini"
    usage: Dict[str, int]  # prompt_tokens, completion_tokens, total_tokens
    raw_response: Optional[Dict[str, Any]] = None


class BaseLLMProvider(ABC):
    """Abstract base class for all LLM providers.

    Providers are constructed with explicit credentials and model options;
    a missing API key raises ``ValueError`` at construction time.
    """

    def __init__(self, api_key: Optional[str], model: str, temperature: float, max_tokens: int):
        if not api_key:
            raise ValueError(
                f"{self.provider_name.upper()}_API_KEY not provided (set via environment or .env file)"
            )
        self.api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        response_schema: Optional[Type[BaseModel]] = None,
    ) -> LLMResponse:
        """
        Generate completion from prompts.

        Args:
            system_prompt: System message for the model
            user_prompt: User message/query
            temperature: Sampling temperature, provider default when None
            max_tokens: Maximum tokens in response, provider default when None
            json_mode: If True, request JSON output format
            response_schema: Optional Pydantic model to enforce structured output.
                The returned content is then the schema instance dumped as JSON.
        """

    async def health_check(self) -> Dict[str, Any]:
        """Send a tiny prompt and report whether the provider answered."""
        try:
            response = await self.complete(
                system_prompt="You are a test assistant.",
                user_prompt="Reply with 'OK'",
                max_tokens=10,
            )
            return {
                "status": "healthy",
                "provider": self.provider_name,
                "model": self._model,
                "test_response": response.content[:20],
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "provider": self.provider_name,
                "model": self._model,
                "error": str(e),
            }

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name (openai, gemini)."""

    @property
    def model_name(self) -> str:
        return self._model

    @staticmethod
    def _usage_from(response) -> Dict[str, int]:
        """Normalize LangChain usage metadata."""
        metadata = getattr(response, "usage_metadata", None) or {}
        return {
            "prompt_tokens": metadata.get("input_tokens", 0),
            "completion_tokens": metadata.get("output_tokens", 0),
            "total_tokens": metadata.get("total_tokens", 0),
        }
