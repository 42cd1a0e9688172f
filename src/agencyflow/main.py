"""ASGI entry point: ``agencyflow.main:app``."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agencyflow.api.middleware.auth import AuthMiddleware
from agencyflow.api.middleware.trace_id import TraceIdMiddleware
from agencyflow.api.router import api_router
from agencyflow.config import settings
from agencyflow.db.base import Base
from agencyflow.db.engine import create_db_engine, create_session_factory
from agencyflow.errors.handlers import register_exception_handlers
from agencyflow.logging_config import configure_logging
from agencyflow.services.notifications import build_notification_fanout
import agencyflow.db.models  # noqa: F401  registers row classes on Base.metadata

configure_logging(log_level=settings.log_level, json_output=settings.json_logs)

logger = logging.getLogger(__name__)


async def create_schema(engine) -> None:
    """SQLite databases are built from metadata; PostgreSQL is migrated externally."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_db_engine(settings.effective_database_url)
    if engine.dialect.name == "sqlite":
        await create_schema(engine)
    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)
    logger.info("agencyflow api ready on %s", engine.dialect.name)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("agencyflow api stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="AgencyFlow API",
        version="0.1.0",
        description="Approvals, stage transitions and notifications for agency projects.",
        lifespan=lifespan,
    )

    # Starlette runs the most recently added middleware first: trace, auth, CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    register_exception_handlers(app)
    app.state.notification_fanout = build_notification_fanout(settings)
    app.include_router(api_router)
    return app


app = create_app()
