"""
Debt Negotiation Engine - FastAPI Application

Main entry point for the service providing:
- Inbound email webhook (new notices, replies, opt-outs)
- Letter review, approval and delivery
- Reply analysis
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from src.api.errors import ErrorCode, ErrorResponse, NegotiationEngineError
from src.api.middleware import RequestIDMiddleware, get_request_id
from src.api.routes import analyze, debts, health, inbound
from src.config.settings import Settings, settings as default_settings
from src.container import Container, build_container

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    """Build the application. Tests pass their own settings or container."""
    settings = settings or (container.settings if container else default_settings)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        llm_client = app.state.container.llm_client
        logger.info("=" * 60)
        logger.info("Starting Debt Negotiation Engine")
        logger.info("=" * 60)
        logger.info(
            f"LLM: {llm_client.primary_provider_name if llm_client else 'disabled (rule-based)'}"
        )
        logger.info(f"Port: {settings.api_port}")
        logger.info(f"Debug: {settings.debug}")
        yield

    app = FastAPI(
        title="Debt Negotiation Engine",
        description="Automated negotiation of debt collection notices by email",
        version=health.VERSION,
        lifespan=lifespan,
    )
    app.state.container = container or build_container(settings)

    # Rate limiter shared with the route decorators
    app.state.limiter = inbound.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(RequestIDMiddleware)

    cors_origins = settings.get_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.info(f"CORS enabled for origins: {cors_origins}")
    else:
        logger.warning("CORS disabled - no origins configured and not in debug mode")

    @app.exception_handler(NegotiationEngineError)
    async def engine_error_handler(request: Request, exc: NegotiationEngineError) -> JSONResponse:
        """Structured response for every engine exception."""
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code.value}: {exc.message}")
        error_response = ErrorResponse(
            error=exc.message,
            error_code=exc.error_code,
            details=exc.details,
            request_id=get_request_id(),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        error_response = ErrorResponse(
            error="An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"exception_type": type(exc).__name__} if settings.debug else None,
            request_id=get_request_id(),
        )
        return JSONResponse(
            status_code=500,
            content=error_response.model_dump(mode="json"),
        )

    app.include_router(health.router, tags=["Health"])
    app.include_router(inbound.router, tags=["Inbound"])
    app.include_router(analyze.router, tags=["Analysis"])
    app.include_router(debts.router, tags=["Debts"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=default_settings.api_host,
        port=default_settings.api_port,
        reload=default_settings.debug,
    )
