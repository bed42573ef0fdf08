"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from headcount import __version__
from headcount.api.routes import events, stream
from headcount.db.connection import close_database, get_database
from headcount.events import get_notifier, reset_notifier
from headcount.service import EventService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Headcount API...")
    db = await get_database(app.state.db_path)
    app.state.db = db
    app.state.notifier = get_notifier()
    app.state.service = EventService(db, app.state.notifier)
    logger.info("Database connected")

    yield

    # Shutdown
    logger.info("Shutting down Headcount API...")
    reset_notifier()
    app.state.service = None
    await close_database()
    logger.info("Database disconnected")


def create_app(db_path: str | Path | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Headcount",
        description="Event signups with live-updating lists",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db_path = db_path

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Share links are opened from anywhere
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(events.router, prefix="/api/events", tags=["events"])
    app.include_router(stream.router, prefix="/ws", tags=["websocket"])

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app


# Create the app instance
app = create_app()
