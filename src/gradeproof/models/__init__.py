# src/gradeproof/models/__init__.py
"""SQLAlchemy models for the gradeproof application."""

from .access_log import ClientAccessLog
from .grading_request import GradingRequest

__all__ = [
    "ClientAccessLog",
    "GradingRequest",
]
