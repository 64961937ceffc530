# src/gradeproof/main.py
"""Main entry point for the gradeproof application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from gradeproof.api.v1 import client_video_router, public_router, video_router
from gradeproof.api.v1.errors import ApiError, api_error_handler
from gradeproof.core.settings import settings
from gradeproof.db.session import create_tables
from gradeproof.services.session_sweeper import SessionSweeper

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="gradeproof API",
    description="Video proof capture and customer access for grading submissions",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

app.add_exception_handler(ApiError, api_error_handler)

# Include API routers
app.include_router(public_router, prefix="/api")
app.include_router(video_router, prefix="/api")
app.include_router(client_video_router, prefix="/api")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.uses_default_secret:
        logger.warning("CLIENT_SECRET is not configured; using the development default")
    create_tables()
    sweeper = SessionSweeper()
    await sweeper.start()
    app.state.session_sweeper = sweeper


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: SessionSweeper | None = getattr(app.state, "session_sweeper", None)
    if sweeper:
        await sweeper.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Video proof capture and customer access for grading submissions",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gradeproof.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
