"""
FastAPI application entry point for the scrumboard server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scrumboard.config import Settings, get_settings
from scrumboard.dependencies import get_backend
from scrumboard.errors import ConfigurationError, ValidationError
from scrumboard.provider import BackendClient
from scrumboard.routes import router
from scrumboard.spa import create_spa_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Scrumboard server starting")
    yield
    logger.info("Scrumboard server shutting down")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(status_code=400, content={"error": "Invalid request."})

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        logger.critical("Configuration error: %s", exc)
        return JSONResponse(
            status_code=500, content={"error": "Server is not configured."}
        )


def create_app(
    settings: Settings | None = None,
    backend: BackendClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Scrumboard API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    if backend is not None:
        app.dependency_overrides[get_backend] = lambda: backend

    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(create_spa_router(settings.spa_dir, settings.api_prefix))
    return app


app = create_app()
