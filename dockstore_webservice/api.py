"""
FastAPI application for the Dockstore webservice.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .core.routes import entries_router, router as workflows_router
from .db.base import init_database
from .dependencies import close_index_notifier
from .errors import DockstoreError
from .logging_config import configure_logging

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("Starting Dockstore webservice", version=__version__)

    try:
        init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    close_index_notifier()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Registry of tools and workflows refreshed from source control",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DockstoreError)
async def dockstore_error_handler(request: Request, exc: DockstoreError) -> JSONResponse:
    logger.warning(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": __version__}


app.include_router(workflows_router)
app.include_router(entries_router)
