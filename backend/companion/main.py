"""
ACT Companion - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import auth_router, chat_router, sessions_router
from .config import Settings, get_settings
from .container import ServiceContainer, build_container
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (read from the environment if omitted)
        container: Pre-built services, mainly for tests
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        services = container or build_container(settings)
        app.state.container = services

        await services.auth.init_user()
        if services.auth.user is None:
            await services.sessions.load_saved_sessions()

        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Local storage path: {settings.local_storage_path}")
        logger.info(f"Supabase configured: {settings.supabase_configured}")
        yield
        services.close()
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Companion service for guided ACT self-reflection sessions",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.log_api_requests:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(auth_router)
    app.include_router(chat_router)
    app.include_router(sessions_router)

    @app.get("/")
    async def root():
        """Home route."""
        return {
            "app": settings.app_name,
            "version": settings.app_version,
            "status": "running",
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "supabase": settings.supabase_configured,
            "llm": bool(settings.llm_api_key),
            "version": settings.app_version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "companion.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
    )
