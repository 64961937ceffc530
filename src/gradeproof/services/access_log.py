"""Persistence of client access attempts and per-submission access stats."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gradeproof.db.time import utcnow
from gradeproof.models import ClientAccessLog, GradingRequest

logger = logging.getLogger(__name__)


@dataclass
class AccessLogEntry:
    """Fields recorded for one verification or video access attempt."""

    access_type: str
    access_granted: bool
    submission_id: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    email_domain: str | None = None
    token_issued: str | None = None
    token_expires_at: datetime | None = None
    session_id: str | None = None
    failure_reason: str | None = None


def log_client_access(db: Session, entry: AccessLogEntry) -> None:
    """Insert an access log row.

    Audit failures never block the customer; they are logged and rolled back.
    """
    try:
        db.add(ClientAccessLog(**asdict(entry)))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to record client access for %s: %s", entry.submission_id, e)
        return

    logger.info(
        "Client access logged: %s %s - %s",
        entry.access_type,
        entry.submission_id,
        "SUCCESS" if entry.access_granted else "FAILED",
    )


def update_client_access_stats(db: Session, grading_request: GradingRequest) -> None:
    """Bump the access counter and last-access time of a submission."""
    try:
        grading_request.client_access_count = (grading_request.client_access_count or 0) + 1
        grading_request.last_client_access = utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Failed to update client access stats for %s: %s",
            grading_request.submission_id,
            e,
        )
