# src/gradeproof/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import client_video_router, public_router, video_router

__all__ = [
    "client_video_router",
    "public_router",
    "video_router",
]
