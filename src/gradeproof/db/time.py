# src/gradeproof/db/time.py
"""Time utilities for database models."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def from_epoch(seconds: float) -> datetime:
    """Convert epoch seconds into a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(seconds, UTC)
