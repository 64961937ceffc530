"""Submission lookups and proof-video storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy.orm import Session

from gradeproof.core.settings import settings
from gradeproof.db.time import utcnow
from gradeproof.models import GradingRequest
from gradeproof.models.grading_request import VIDEO_STATUS_UPLOADED

logger = logging.getLogger(__name__)

VIDEO_SUBDIR = "videos"


@dataclass(frozen=True)
class SubmissionAccess:
    """Result of checking whether customers may reach a submission's video."""

    valid: bool
    reason: str | None = None
    submission: GradingRequest | None = None


def get_submission(db: Session, submission_id: str) -> GradingRequest | None:
    """Return the grading request for `submission_id`, if any."""
    return (
        db.query(GradingRequest)
        .filter(GradingRequest.submission_id == submission_id)
        .first()
    )


def verify_submission_access(db: Session, submission_id: str) -> SubmissionAccess:
    """Check a submission exists, allows client access and has a video."""
    submission = get_submission(db, submission_id)
    if submission is None:
        return SubmissionAccess(valid=False, reason="Submission number not found")

    if not submission.client_access_enabled:
        return SubmissionAccess(valid=False, reason="Client access disabled for this submission")

    if not submission.has_uploaded_video:
        return SubmissionAccess(valid=False, reason="Proof video not available")

    return SubmissionAccess(valid=True, submission=submission)


def upload_root() -> Path:
    return Path(settings.upload_dir)


def resolve_upload_path(relative: str) -> Path:
    """Map a stored relative path onto the upload directory.

    Raises:
        ValueError: If the path escapes the upload directory.
    """
    root = upload_root().resolve()
    candidate = (root / relative).resolve()
    if root != candidate and root not in candidate.parents:
        raise ValueError(f"Path escapes upload directory: {relative}")
    return candidate


_VIDEO_MEDIA_TYPES = {".mp4": "video/mp4", ".mov": "video/quicktime"}


def video_media_type(path: str | Path) -> str:
    return _VIDEO_MEDIA_TYPES.get(Path(path).suffix.lower(), "video/webm")


def store_video(
    db: Session,
    submission: GradingRequest,
    data: bytes,
    *,
    extension: str = ".webm",
    duration: int | None = None,
    recorded_at: datetime | None = None,
) -> Path:
    """Write an uploaded proof video to disk and mark the submission uploaded.

    A previous video for the same submission is replaced.

    Returns:
        Absolute path of the stored file.
    """
    timestamp = int(utcnow().timestamp() * 1000)
    relative = f"{VIDEO_SUBDIR}/{submission.submission_id}-{timestamp}{extension}"
    target = resolve_upload_path(relative)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)

    previous = submission.video_url
    submission.video_url = relative
    submission.video_status = VIDEO_STATUS_UPLOADED
    submission.video_file_size = len(data)
    submission.video_duration = duration
    submission.recording_timestamp = recorded_at or utcnow()
    db.commit()

    if previous and previous != relative:
        try:
            resolve_upload_path(previous).unlink(missing_ok=True)
        except (OSError, ValueError) as e:
            logger.error("Failed to delete replaced video %s: %s", previous, e)

    logger.info(
        "Stored proof video for %s (%d bytes, %ss)",
        submission.submission_id,
        len(data),
        duration,
    )
    return target
