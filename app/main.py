"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app.api.deps import get_background_tasks, get_session_store
from app.api.v1.api import api_router
from app.config import settings
from app.utils.exceptions import ScenarioChatException, to_http_exception


tags_metadata: List[dict[str, str]] = [
    {"name": "sessions", "description": "Create sessions and manage their scenario context."},
    {"name": "chat", "description": "Stream roleplay replies for chat turns."},
    {"name": "tools", "description": "Grammar feedback, task checks and word translation."},
    {"name": "generation", "description": "Generate tasks, vocabulary, hints, scenes and examples."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; every completion will fail until it is configured")
    if settings.SESSION_SNAPSHOT_PATH is not None:
        get_session_store().load_snapshot(settings.SESSION_SNAPSHOT_PATH)
    yield
    background = get_background_tasks()
    if len(background):
        logger.info("Waiting for background tasks", pending=len(background))
        await background.drain()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Scenario roleplay chat service for language learners.",
        version="0.1.0",
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Session-Id"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors(), "message": "Validation failed"},
        )

    @app.exception_handler(ScenarioChatException)
    async def domain_exception_handler(request: Request, exc: ScenarioChatException) -> JSONResponse:
        http_exc = to_http_exception(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
