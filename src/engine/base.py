"""
Common shape for engine capabilities that have a generative and a
rule-based implementation.

An implementation that cannot serve a request raises
``ComponentUnavailableError``; ``ComponentWithFallback`` is the single place
that reacts to it by switching to the deterministic implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Generic, Literal, TypeVar

from src.api.errors import NegotiationEngineError
from src.utils import log_metric

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")

Source = Literal["ai", "fallback"]


class ComponentUnavailableError(Exception):
    """Raised by an implementation that cannot produce a result right now."""


class EngineComponent(ABC, Generic[RequestT, ResultT]):
    """One implementation of an engine capability."""

    name: str = "component"
    source: Source = "fallback"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def run(self, request: RequestT) -> ResultT:
        """Produce a result or raise ``ComponentUnavailableError``."""


class ComponentWithFallback(EngineComponent[RequestT, ResultT]):
    """
    Try the primary implementation, use the fallback when it is not
    configured or reports itself unavailable.

    The fallback must never raise ``ComponentUnavailableError``.
    """

    def __init__(
        self,
        primary: EngineComponent[RequestT, ResultT],
        fallback: EngineComponent[RequestT, ResultT],
    ):
        self.primary = primary
        self.fallback = fallback
        self.name = primary.name
        self.fallback_count = 0

    @property
    def source(self) -> Source:
        return self.primary.source if self.primary.available else self.fallback.source

    async def run(self, request: RequestT) -> ResultT:
        if self.primary.available:
            try:
                return await self.primary.run(request)
            except ComponentUnavailableError as e:
                logger.warning("%s unavailable, using fallback: %s", self.name, e)
                self.fallback_count += 1
                log_metric("component_fallback", component=self.name, reason=str(e))
        return await self.fallback.run(request)


class LLMComponent(EngineComponent[RequestT, ResultT]):
    """Generative implementation backed by the text-generation client."""

    source: Source = "ai"

    def __init__(self, llm_client):
        self.llm_client = llm_client

    @property
    def available(self) -> bool:
        return self.llm_client is not None

    async def _generate(self, system_prompt: str, user_prompt: str, schema, temperature: float):
        """Structured call; any provider, timeout or schema failure means unavailable."""
        if self.llm_client is None:
            raise ComponentUnavailableError("no LLM provider configured")
        try:
            return await self.llm_client.generate_structured(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                schema=schema,
                temperature=temperature,
            )
        except NegotiationEngineError as e:
            raise ComponentUnavailableError(f"{e.error_code.value}: {e.message}") from e
