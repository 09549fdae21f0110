"""crewgate API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CrewGateError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and task registry initialized on startup via lifespan; shutdown drains
      in-flight deferred assessments before disposing the engine

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Drain before dispose: assessments still need their own DB sessions
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import crewgate.infrastructure.database as db_module
from crewgate.api.error_handlers import register_error_handlers
from crewgate.api.routes import health, memberships, requirements
from crewgate.config import get_settings
from crewgate.infrastructure.background_tasks import init_task_registry
from crewgate.infrastructure.database import init_db
from crewgate.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    registry = init_task_registry()
    logger.info("crewgate API started")
    yield
    logger.info("crewgate API shutting down")
    cancelled = await registry.drain(settings.task_drain_timeout_seconds)
    if cancelled:
        logger.warning(f"{cancelled} deferred assessments cancelled at shutdown")
    if db_module.db_manager:
        await db_module.db_manager.dispose()


app = FastAPI(
    title="crewgate API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(memberships.router)
app.include_router(requirements.router)

register_error_handlers(app)
