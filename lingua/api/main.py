"""
FastAPI application for the lingua progression engine.

Provides REST API for:
- Learning sessions (start, submit, end, state)
- Module catalog and concepts
- Per-module performance and CEFR estimate
- Vocabulary lookup
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import Settings, configure_logging, get_settings
from lingua.container import EngineContainer
from lingua.core.errors import (
    ConcurrencyConflict,
    GenerationFailure,
    GradingFailure,
    LearningEngineError,
    NoEligibleStepError,
    NotFoundError,
    SessionClosedError,
    UnauthorizedError,
    ValidationError,
)

from .routers import catalog_router, session_router, vocabulary_router

# Most specific first; the first isinstance match wins
ERROR_STATUS: tuple[tuple[type[LearningEngineError], int], ...] = (
    (NotFoundError, 404),
    (UnauthorizedError, 403),
    (ConcurrencyConflict, 409),
    (SessionClosedError, 409),
    (GenerationFailure, 502),
    (ValidationError, 422),
    (GradingFailure, 503),
    (NoEligibleStepError, 409),
)


def status_for(error: LearningEngineError) -> int:
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 500


def create_app(
    settings: Settings | None = None,
    container: EngineContainer | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to environment)
        container: Pre-wired engine; built during startup when omitted
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        # Startup
        owns_container = container is None
        if owns_container:
            configure_logging(settings)
            app.state.container = EngineContainer.build(settings)
        else:
            app.state.container = container
        logger.info(f"Lingua engine started on {settings.api_host}:{settings.api_port}")

        yield

        # Shutdown
        logger.info("Shutting down lingua engine...")
        if owns_container:
            await app.state.container.close()

    app = FastAPI(
        title="Lingua Progression Engine",
        description="Adaptive practice loop: pick, generate, mark, track.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LearningEngineError)
    async def engine_error_handler(request: Request, exc: LearningEngineError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected ({status}): {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    app.include_router(session_router, prefix="/learning/session", tags=["Session"])
    app.include_router(catalog_router)
    app.include_router(vocabulary_router)

    @app.get("/health", tags=["Health"])
    def health_check(request: Request) -> dict[str, Any]:
        engine: EngineContainer = request.app.state.container
        db_status, db_error = engine.db.check_health()
        result: dict[str, Any] = {
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "database": db_status,
                "ai": "configured" if engine.settings.has_ai_configured() else "not_configured",
                "modules": len(engine.catalog.modules.get_all_modules()),
                "modal_schemas": len(engine.catalog.schemas.get_all_schemas()),
            },
        }
        if db_error:
            result["errors"] = {"database": db_error}
        return result

    return app
