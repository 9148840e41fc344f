"""Gemini LLM provider using LangChain."""

import logging
from typing import Optional, Type

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel

from .base import BaseLLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    """Gemini provider using LangChain."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ):
        super().__init__(api_key, model, temperature, max_tokens)
        logger.info(f"Initialized Gemini provider with model: {self._model}")

    @property
    def provider_name(self) -> str:
        return "gemini"

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
        Generate completion using Gemini via LangChain.

        With ``response_schema`` the call goes through
        ``with_structured_output(method="json_schema")``; with bare
        ``json_mode`` the response MIME type is forced to JSON.
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        client_kwargs = {
            "model": self._model,
            "google_api_key": self.api_key,
            "temperature": temperature if temperature is not None else self._temperature,
            "max_output_tokens": max_tokens if max_tokens is not None else self._max_tokens,
        }
        if json_mode and not response_schema:
            client_kwargs["response_mime_type"] = "application/json"

        client = ChatGoogleGenerativeAI(**client_kwargs)

        logger.debug(
            "Calling Gemini: model=%s, json_mode=%s, has_schema=%s",
            self._model,
            json_mode,
            response_schema is not None,
        )

        try:
            if response_schema:
                structured_client = client.with_structured_output(
                    response_schema,
                    method="json_schema",
                )
                result = await structured_client.ainvoke(messages)
                # Usage metadata is not exposed on structured output
                return LLMResponse(
                    content=result.model_dump_json(),
                    model=self._model,
                    provider="gemini",
                    usage={"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
                    raw_response={"structured": True},
                )

            response = await client.ainvoke(messages)
        except Exception as e:
            logger.error(f"Gemini provider error: {e}")
            raise

        usage = self._usage_from(response)
        logger.debug(f"Gemini response: tokens={usage['total_tokens']}")

        # Gemini may return a list of content blocks
        content = response.content
        if isinstance(content, list):
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )

        return LLMResponse(
            content=content,
            model=self._model,
            provider="gemini",
            usage=usage,
            raw_response={"response_metadata": response.response_metadata}
            if hasattr(response, "response_metadata")
            else None,
        )
