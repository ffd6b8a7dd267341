"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from src.api.dependencies import get_ledger
from src.api.models import HealthResponse
from src.api.routes import router as submissions_router
from src.config.settings import get_settings
from src.domain.ports import SubmissionLedger
from src.services.bootstrap import build_runtime_container

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "submissions",
        "description": "Three-stage exhibitor registration forms",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Builds the ledger, mail transport and notification dispatcher
    - Starts the ledger (writer task or connection pool + migrations)
    - Drains and closes the ledger on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")
    container = build_runtime_container(settings)

    logger.info("Starting %s ledger...", settings.ledger_backend)
    await container.ledger.start()

    # Store collaborators in app state for dependency injection
    app.state.ledger = container.ledger
    app.state.dispatcher = container.dispatcher

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await container.ledger.close()
    logger.info("Ledger closed")


app = FastAPI(
    title="exhibitor-intake",
    description="Collects three-stage exhibitor registrations and notifies on completion",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(submissions_router)


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Liveness message."""
    return "Exhibitor registration server is running!"


@app.get("/health", response_model=HealthResponse)
async def health_check(ledger: SubmissionLedger = Depends(get_ledger)) -> HealthResponse:
    """
    Health check endpoint with ledger validation.

    Returns 200 OK with the number of stored records.
    """
    records = await ledger.load_all()
    return HealthResponse(status="healthy", records=len(records))
