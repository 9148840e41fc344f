"""
Health check API endpoint.

GET /health - Service health, LLM provider and fallback counters.
"""

import time

from fastapi import APIRouter, Depends

from src.api.dependencies import get_container
from src.api.models.responses import HealthResponse
from src.container import Container

router = APIRouter()

# Track service start time for uptime calculation
_start_time = time.time()

VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> HealthResponse:
    """
    Health check endpoint.

    ``degraded`` means the service is up but running on rule-based
    fallbacks (no LLM configured or the primary provider is not responding).
    """
    uptime = round(time.time() - _start_time, 2)
    llm_client = container.llm_client
    common = dict(
        version=VERSION,
        component_fallback_counts=container.component_fallback_counts(),
        mail_configured=container.mail_configured,
        uptime_seconds=uptime,
    )

    if llm_client is None:
        return HealthResponse(status="degraded", **common)

    llm_health = await llm_client.health_check()
    primary_healthy = llm_health["primary"]["status"] == "healthy"

    return HealthResponse(
        status="healthy" if primary_healthy else "degraded",
        provider=llm_client.provider_name,
        model=llm_client.model_name,
        fallback_provider=llm_client.fallback.provider_name if llm_client.fallback else None,
        fallback_model=llm_client.fallback.model_name if llm_client.fallback else None,
        llm_fallback_count=llm_client.fallback_count,
        model_available=primary_healthy,
        **common,
    )
