"""OpenAI LLM provider using LangChain."""

import logging
from typing import Optional, Type

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import LengthFinishReasonError
from pydantic import BaseModel

from .base import BaseLLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI LLM provider using LangChain."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-5-nano",
        temperature: float = 0.3,
        max_tokens: int = 16384,
    ):
        super().__init__(api_key, model, temperature, max_tokens)
        logger.info(f"Initialized OpenAI provider with model: {self._model}")

    @property
    def provider_name(self) -> str:
        return "openai"

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
        Generate completion using OpenAI via LangChain.

        Reasoning models can spend the whole ``max_tokens`` budget before
        producing output; that case is reported as a ``ValueError`` naming
        the setting to raise.
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        effective_max = max_tokens if max_tokens is not None else self._max_tokens

        client_kwargs = {
            "model": self._model,
            "openai_api_key": self.api_key,
            "temperature": temperature if temperature is not None else self._temperature,
            "max_tokens": effective_max,
        }
        if json_mode and not response_schema:
            client_kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

        client = ChatOpenAI(**client_kwargs)

        logger.debug(
            "Calling OpenAI: model=%s, json_mode=%s, has_schema=%s",
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
                return LLMResponse(
                    content=result.model_dump_json(),
                    model=self._model,
                    provider="openai",
                    usage={"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
                    raw_response={"structured": True},
                )

            response = await client.ainvoke(messages)
        except LengthFinishReasonError as e:
            logger.error(
                "OpenAI LengthFinishReasonError: model=%s exhausted max_tokens=%d",
                self._model,
                effective_max,
            )
            raise ValueError(
                f"OpenAI model '{self._model}' exhausted max_tokens={effective_max} on reasoning. "
                f"Increase openai_max_tokens in settings."
            ) from e
        except Exception as e:
            logger.error(f"OpenAI provider error: {e}")
            raise

        usage = self._usage_from(response)
        logger.debug(f"OpenAI response: tokens={usage['total_tokens']}")

        return LLMResponse(
            content=response.content,
            model=self._model,
            provider="openai",
            usage=usage,
            raw_response={"response_metadata": response.response_metadata}
            if hasattr(response, "response_metadata")
            else None,
        )
