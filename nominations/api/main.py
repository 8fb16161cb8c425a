"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures logging, the notification outbox, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from nominations import __version__
from nominations.adapters.outbox import InMemoryOutbox
from nominations.adapters.repository.postgres import run_migrations
from nominations.api.v1 import router as v1_router
from nominations.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Nominator registration, approval, and dashboard tables",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Configures logging
    - Creates database connection pool and runs migrations
    - Creates the notification outbox
    - Reports undelivered notifications and closes the pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        open=True,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    app.state.pool = pool
    app.state.outbox = InMemoryOutbox(
        max_attempts=settings.notification_max_attempts,
        initial_delay=settings.notification_retry_initial_delay,
        max_delay=settings.notification_retry_max_delay,
    )

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    outbox: InMemoryOutbox = app.state.outbox
    undelivered = len(outbox.pending) + len(outbox.dead_letters)
    if undelivered:
        logger.warning("%d notification(s) were never delivered", undelivered)
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="nominations",
    description="Holiday nominations case management - nominator registration and dashboard API",
    version=__version__,
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
