from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.routes import cron, health, rates
from fxrates.config import load_config
from fxrates.services import RateServices, build_services
from fxrates.utils.errors import (
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from fxrates.utils.logging import get_logger


logger = get_logger(__name__)


def create_app(services: Optional[RateServices] = None) -> FastAPI:
    """Build the API. ``services`` is created from config at startup when omitted."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services or build_services(load_config())
        owned.start()
        app.state.services = owned
        logger.info("Rate services started")
        try:
            yield
        finally:
            owned.close()

    app = FastAPI(
        title="FX Rates API",
        description="Cached exchange rates with stale fallback for multi-currency conversion",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS (broad for dev; tighten in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": "Invalid request", "details": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": "Not found", "details": str(exc)})

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(request: Request, exc: AuthorizationError):
        logger.warning(f"Unauthorized request to {request.url.path}: {exc}")
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "details": "Invalid or missing authorization token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Server misconfiguration: {exc}")
        return JSONResponse(status_code=500, content={"error": "Server misconfiguration", "details": str(exc)})

    # Routers
    app.include_router(rates.router, prefix="/api", tags=["rates"])
    app.include_router(cron.router, prefix="/api/cron", tags=["cron"])
    app.include_router(health.router, tags=["health"])

    return app


app = create_app()
