# src/gradeproof/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .client_video import router as client_video_router
from .public import router as public_router
from .video import router as video_router

__all__ = [
    "client_video_router",
    "public_router",
    "video_router",
]
