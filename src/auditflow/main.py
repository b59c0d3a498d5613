"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auditflow.config import settings
from auditflow.logging_config import configure_logging

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


async def _build_storage():
    from auditflow.db.engine import create_db_engine, create_session_factory
    from auditflow.storage.sql import SqlStorage

    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in db_url:
        from auditflow.db.base import Base
        import auditflow.db.models  # noqa: F401 register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    return SqlStorage(create_session_factory(engine), engine=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the job lifecycle runtime across application startup and shutdown."""
    from auditflow.runtime import AuditRuntime
    from auditflow.workers.executor import load_executor

    # Tests install their own runtime before startup
    runtime = getattr(app.state, "runtime", None)
    owns_runtime = runtime is None
    if owns_runtime:
        storage = await _build_storage()
        runtime = AuditRuntime.build(storage, load_executor(settings.executor))
        app.state.runtime = runtime
        await runtime.start()

    logger.info(
        "auditflow API started (db=%s)",
        "sqlite" if "sqlite" in settings.effective_database_url else "postgresql",
    )
    yield

    if owns_runtime:
        await runtime.stop()
    logger.info("auditflow API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="auditflow API",
        version="1.0.0",
        description="Queued website audits with plan quotas and signed webhook callbacks.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from auditflow.api.middleware.rate_limit import setup_rate_limiter
    setup_rate_limiter(app)

    from auditflow.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from auditflow.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Import and mount routers
    from auditflow.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
