"""FastAPI application factory and lifespan management."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rubberband.config import settings
from rubberband.logging_config import configure_logging
from rubberband.services.backend import build_backend
from rubberband.services.notifier import default_notifier

# Configure logging at import time
_json_logs = os.environ.get("RUBBERBAND_LOCAL", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    engine = None
    session_factory = None

    if not settings.uses_supabase:
        from rubberband.db.engine import create_db_engine, create_session_factory

        db_url = settings.effective_database_url
        engine = create_db_engine(db_url)

        # Auto-create tables for SQLite (local dev, no migrations)
        if "sqlite" in db_url:
            from rubberband.db.base import Base
            import rubberband.db.models  # noqa: F401 (registers all ORM models)

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("SQLite tables created (local mode)")

        session_factory = create_session_factory(engine)

    app.state.db_engine = engine
    app.state.backend = build_backend(settings, session_factory)
    app.state.notifier = default_notifier()
    if not settings.supabase_service_role_key:
        logger.warning("No service role key configured; account deletion will be refused")

    logger.info("Rubberband API started (backend=%s)", type(app.state.backend).__name__)
    yield

    # Shutdown
    aclose = getattr(app.state.backend, "aclose", None)
    if aclose is not None:
        await aclose()
    if engine is not None:
        await engine.dispose()
    logger.info("Rubberband API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Rubberband OS API",
        version="0.1.0",
        description="Tenant lifecycle API: signup provisioning, onboarding, membership and account deletion.",
        lifespan=lifespan,
    )

    # CORS middleware for the web frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add middleware (order matters: last added = first executed)
    from rubberband.api.middleware.trace_id import TraceIdMiddleware
    from rubberband.api.middleware.auth import AuthMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from rubberband.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Import and mount routers
    from rubberband.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
