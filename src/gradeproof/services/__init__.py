# src/gradeproof/services/__init__.py
"""Business logic services for the gradeproof application."""

from .access_tokens import AccessTokenService
from .rate_limit import RateLimiter
from .session_store import InMemoryStore, SessionStore
from .session_sweeper import SessionSweeper

__all__ = [
    "AccessTokenService",
    "RateLimiter",
    "InMemoryStore",
    "SessionStore",
    "SessionSweeper",
]
