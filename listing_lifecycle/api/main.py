"""FastAPI application entry point."""
import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from listing_lifecycle.api.routes import admin, contacts, health, listings, payments
from listing_lifecycle.config import settings
from listing_lifecycle.infrastructure.providers import sweep_loop
from listing_lifecycle.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings)
    logger.info("listing_lifecycle_starting", sweep_interval_seconds=settings.sweep_interval_seconds)

    sweep_task: asyncio.Task[None] | None = None
    if settings.sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(sweep_loop(settings.sweep_interval_seconds))

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    logger.info("listing_lifecycle_stopping")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Listing Lifecycle",
        description="Payment-gated listing activation and contact routing for the marketplace.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(listings.router)
    app.include_router(payments.router)
    app.include_router(contacts.router)
    app.include_router(admin.router)

    return app


app = create_app()
