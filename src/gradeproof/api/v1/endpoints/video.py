# src/gradeproof/api/v1/endpoints/video.py
"""Proof-video metadata and upload endpoints."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from gradeproof.api.v1.dependencies import SessionDep
from gradeproof.api.v1.errors import ApiError
from gradeproof.core.security import (
    detect_video_extension,
    sanitize_submission_id,
    upload_token,
    verify_upload_token,
)
from gradeproof.core.settings import settings
from gradeproof.models import GradingRequest
from gradeproof.schemas.submission import (
    UploadTokenResponse,
    VideoInfo,
    VideoInfoResponse,
    VideoOwner,
    VideoUploadResponse,
)
from gradeproof.services.submissions import get_submission, resolve_upload_path, store_video

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/video", tags=["video"])

# Enough of the head of a file to identify its container.
_SNIFF_BYTES = 16


def _now_ms() -> int:
    return int(time.time() * 1000)


def _sanitized(submission_id: str) -> str:
    try:
        return sanitize_submission_id(submission_id)
    except ValueError:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_SUBMISSION_ID",
            "Invalid submission ID",
        ) from None


def _require_upload_token(submission_id: str, token: str | None, ts: str | None) -> None:
    if not token or not ts:
        logger.warning("Upload attempted without a token for %s", submission_id)
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "AUTH_REQUIRED",
            "An upload token is required to upload a video",
        )

    reason = verify_upload_token(
        settings.client_secret,
        submission_id,
        token,
        ts,
        now_ms=_now_ms(),
        ttl_ms=settings.upload_token_ttl_seconds * 1000,
    )
    if reason is not None:
        logger.warning("Upload token rejected for %s: %s", submission_id, reason)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_TOKEN", f"Invalid token: {reason}")


def _video_info(submission: GradingRequest) -> VideoInfo:
    return VideoInfo(
        submission_id=submission.submission_id,
        status=submission.video_status,
        file_size=submission.video_file_size or 0,
        duration=submission.video_duration,
        recorded_at=submission.recording_timestamp,
    )


def _parse_start_time(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("Ignoring malformed recording start time: %r", raw)
        return None


@router.get("/upload-token/{submission_id}", response_model=UploadTokenResponse)
def issue_upload_token(submission_id: str, db: SessionDep) -> UploadTokenResponse:
    """Sign a time-limited credential the capture station presents on upload."""
    sanitized = _sanitized(submission_id)
    if get_submission(db, sanitized) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "SUBMISSION_NOT_FOUND", "Submission not found")

    issued = _now_ms()
    valid_for_ms = settings.upload_token_ttl_seconds * 1000
    logger.info("Issued upload token for %s", sanitized)
    return UploadTokenResponse(
        token=upload_token(settings.client_secret, sanitized, issued),
        timestamp=issued,
        expires_at=issued + valid_for_ms,
        valid_for_ms=valid_for_ms,
    )


@router.get("/{submission_id}", response_model=VideoInfoResponse)
def read_video_info(submission_id: str, db: SessionDep) -> VideoInfoResponse:
    """Describe the proof video stored for a submission."""
    sanitized = _sanitized(submission_id)
    submission = get_submission(db, sanitized)
    if submission is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "SUBMISSION_NOT_FOUND", "Submission not found")

    if not submission.has_uploaded_video:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "VIDEO_NOT_FOUND",
            "No video found for this submission",
        )

    try:
        exists = resolve_upload_path(submission.video_url or "").is_file()
    except ValueError:
        exists = False
    if not exists:
        raise ApiError(status.HTTP_404_NOT_FOUND, "VIDEO_FILE_NOT_FOUND", "Video file not found")

    return VideoInfoResponse(
        video=_video_info(submission),
        submission=VideoOwner.model_validate(submission),
    )


@router.post("/upload/{submission_id}", response_model=VideoUploadResponse)
async def upload_video(
    submission_id: str,
    db: SessionDep,
    video: Annotated[UploadFile, File(...)],
    token: Annotated[str | None, Query()] = None,
    ts: Annotated[str | None, Query()] = None,
    duration: Annotated[int | None, Form()] = None,
    start_time: Annotated[str | None, Form(alias="startTime")] = None,
) -> VideoUploadResponse:
    """Receive a recorded proof video from the capture station.

    The upload token is checked before any of the file is read, and the
    stored extension comes from the file's content, not its name.
    """
    sanitized = _sanitized(submission_id)
    _require_upload_token(sanitized, token, ts)

    submission = get_submission(db, sanitized)
    if submission is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "SUBMISSION_NOT_FOUND", "Submission not found")

    data = await video.read(settings.max_upload_bytes + 1)
    if not data:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "EMPTY_VIDEO", "No video received")
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ApiError(
            413,
            "VIDEO_TOO_LARGE",
            f"File too large (maximum {limit_mb}MB)",
        )

    extension = detect_video_extension(data[:_SNIFF_BYTES])
    if extension is None:
        logger.warning(
            "Rejected upload for %s: %r (%s) is not a video",
            sanitized,
            video.filename,
            video.content_type,
        )
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_FILE_TYPE",
            "Only WebM, MP4 and MOV videos are accepted",
        )

    store_video(
        db,
        submission,
        data,
        extension=extension,
        duration=duration,
        recorded_at=_parse_start_time(start_time),
    )
    return VideoUploadResponse(
        message="Video uploaded successfully",
        video=_video_info(submission),
    )
