"""FastAPI application configuration (Settlement API)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from ...envs.api_env import Settings, get_settings
from .dependencies import build_settlement_run_service
from .routers import settlements


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service = build_settlement_run_service(settings.settlement)
        app.state.settlement_runs = service
        yield
        await service.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="GasPay chunked payment settlement API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Include routers
    app.include_router(settlements.router, prefix="/api/v1")
    app.mount("/metrics", make_asgi_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name} Settlement API",
            "version": settings.app_version,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": f"{settings.app_name} Settlement",
            "version": settings.app_version,
        }

    return app
