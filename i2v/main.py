"""
FastAPI application factory: entry point for the image-to-video backend.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from i2v.api.v1.router import v1_router
from i2v.config import settings
from i2v.container import Container, build_container
from i2v.db.base import Base
from i2v.db.session import async_session_factory, engine
from i2v.errors import ServiceError
from i2v.logging_setup import configure_logging
from i2v.middleware.error_handler import (
    ErrorHandlerMiddleware,
    RequestIdMiddleware,
    service_error_handler,
    validation_error_handler,
)

logger = logging.getLogger(__name__)


def create_app(container: Container | None = None) -> FastAPI:
    """Build the app; an injected container skips database setup and teardown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown hooks."""
        configure_logging(settings.LOG_LEVEL)
        owns_engine = container is None
        if owns_engine:
            # Create all tables (dev convenience, use Alembic in production)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            app.state.container = build_container(settings, session_factory=async_session_factory)
        else:
            app.state.container = container

        active: Container = app.state.container
        if active.remote is None:
            logger.warning("Remote rendering backend not configured; only local routing is available")
        await active.sweeper.start()

        yield

        await active.aclose()
        if owns_engine:
            await engine.dispose()

    app = FastAPI(
        title="Image2Video API",
        description="Job routing and queue arbitration for image-to-video generation.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── Middleware (last added runs outermost) ─────────
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # ── API Routes ───────────────────────────────────────
    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "i2v.main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=True,
    )
